"""HTTP API for the FloodWatch river monitor."""
