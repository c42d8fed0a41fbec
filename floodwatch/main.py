#!/usr/bin/env python3
"""
Main entry point for the FloodWatch river monitor.

Usage:
    python -m floodwatch.main --mode=nearby --lat=30.27 --lng=-97.74 --radius=10
    python -m floodwatch.main --mode=flood-stage --site=08158000
    python -m floodwatch.main --mode=weather --lat=30.27 --lng=-97.74
    python -m floodwatch.main --mode=serve --port=5001
"""

import argparse
import json
import logging
import sys
import time

from floodwatch.pipeline.river_service import RiverService
from floodwatch.utils.config import config
from floodwatch.utils.exceptions import FloodWatchError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Log to stderr so stdout stays clean JSON."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)]
    )


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="FloodWatch river flood-risk monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Nearby stations with risk scores
    python -m floodwatch.main --mode=nearby --lat=30.27 --lng=-97.74 --radius=10

    # Flood stage status for one gauge
    python -m floodwatch.main --mode=flood-stage --site=08158000

    # Run the HTTP API
    python -m floodwatch.main --mode=serve
        """
    )

    parser.add_argument(
        "--mode",
        required=True,
        choices=["nearby", "flood-stage", "weather", "serve"],
        help="What to run"
    )
    parser.add_argument("--lat", type=str, help="Latitude of the search center")
    parser.add_argument("--lng", type=str, help="Longitude of the search center")
    parser.add_argument("--radius", type=str, default="10", help="Search radius in miles (default: 10)")
    parser.add_argument("--site", type=str, help="USGS site id (8-15 digits)")
    parser.add_argument("--host", type=str, default=config.api.host, help="Host for --mode=serve")
    parser.add_argument("--port", type=int, default=config.api.port, help="Port for --mode=serve")

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging and progress bars"
    )

    return parser.parse_args(argv)


def run(args: argparse.Namespace, service: RiverService) -> object:
    """Execute one CLI mode and return a JSON-serializable result."""
    if args.mode == "nearby":
        return service.get_nearby_stations(args.lat, args.lng, args.radius)
    if args.mode == "flood-stage":
        return service.get_flood_stage(args.site).to_dict()
    if args.mode == "weather":
        weather = service.get_current_weather(args.lat, args.lng)
        return weather.to_dict()
    raise ValueError(f"Unsupported mode: {args.mode}")


def serve(host: str, port: int) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from floodwatch.api.app import app

    logger.info(f"Starting FloodWatch API on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    if args.mode == "serve":
        serve(args.host, args.port)
        return 0

    logger.info(f"Starting FloodWatch in {args.mode} mode")
    start_time = time.time()

    service = RiverService(show_progress=args.verbose)
    try:
        result = run(args, service)
    except FloodWatchError as e:
        logger.error(f"{e.code}: {e.message}")
        error = {"code": e.code, "message": e.message, "details": e.details}
        print(json.dumps({"success": False, "error": error}, indent=2, default=str))
        return 1
    finally:
        service.close()

    print(json.dumps(result, indent=2, default=str))
    logger.info(f"Completed in {time.time() - start_time:.1f} seconds")
    return 0


if __name__ == "__main__":
    sys.exit(main())
