#!/usr/bin/env python3
"""
Interactive smoke checks against the live USGS, NWPS and NOAA services.

Run each step individually to verify functionality before starting the API.

Usage:
    python scripts/smoke_live_pipeline.py --step 1  # Bounding box + USGS fetch
    python scripts/smoke_live_pipeline.py --step 2  # Series sampling + flow trend
    python scripts/smoke_live_pipeline.py --step 3  # Flood stage resolution
    python scripts/smoke_live_pipeline.py --step 4  # NOAA weather
    python scripts/smoke_live_pipeline.py --step 5  # Full nearby-stations request
    python scripts/smoke_live_pipeline.py --step all
"""

import argparse
import json
import logging

from floodwatch.utils.exceptions import FloodWatchError

# Austin, TX: plenty of USGS gauges, several with official NWPS flood stages
DEFAULT_LAT = 30.2672
DEFAULT_LNG = -97.7431
DEFAULT_RADIUS = 10
DEFAULT_SITE = "08158000"  # Colorado River at Austin


def step_1_fetch_stations(lat, lng, radius):
    """Build the bounding box and fetch grouped stations."""
    print("\n" + "="*60)
    print("STEP 1: Bounding box + USGS Instantaneous Values")
    print("="*60)

    from floodwatch.pipeline.bbox import build_bounding_box
    from floodwatch.pipeline.station_fetcher import StationFetcher, group_by_station

    bbox = build_bounding_box(lat, lng, radius)
    print(f"\nbBox: {bbox.to_param()}")

    try:
        payload = StationFetcher().fetch_payload(bbox)
    except FloodWatchError as e:
        print(f"FAILED: {e.code}: {e.message}")
        return None

    stations = group_by_station(payload)
    print(f"\nSUCCESS! {len(stations)} stations")
    for station in stations[:10]:
        print(f"  {station.site_id}  {station.name[:45]:<45} "
              f"flow={station.latest_value('00060')} stage={station.latest_value('00065')}")

    return payload, stations


def step_2_series(payload, stations):
    """Sample the stage series and compute flow trends."""
    print("\n" + "="*60)
    print("STEP 2: Series sampling + flow trend")
    print("="*60)

    from floodwatch.pipeline.series_sampler import downsample, extract_series
    from floodwatch.pipeline.trend_detector import calculate_flow_trend, summarize_trends

    trends = {}
    for station in stations:
        stage = extract_series(payload, "00065", station.site_id)
        flow = extract_series(payload, "00060", station.site_id, drop_missing=True)
        sampled = downsample(stage)
        trends[station.site_id] = calculate_flow_trend(flow)
        if stage:
            print(f"  {station.site_id}: {len(stage)} stage points -> {len(sampled)} sampled, "
                  f"trend={trends[station.site_id].label} ({trends[station.site_id].flow_trend:+.3f})")

    summary = summarize_trends(trends)
    print(f"\nTrend summary: {summary}")
    return trends


def step_3_flood_stages(site_id):
    """Resolve official or calculated flood stages for one site."""
    print("\n" + "="*60)
    print(f"STEP 3: Flood stages for {site_id}")
    print("="*60)

    from floodwatch.pipeline.river_service import RiverService

    service = RiverService()
    try:
        status = service.get_flood_stage(site_id)
    except FloodWatchError as e:
        print(f"FAILED: {e.code}: {e.message}")
        return None
    finally:
        service.close()

    print(json.dumps(status.to_dict(), indent=2))
    return status


def step_4_weather(lat, lng):
    """Fetch current NOAA conditions and the rain forecast."""
    print("\n" + "="*60)
    print("STEP 4: NOAA weather")
    print("="*60)

    from floodwatch.pipeline.weather_fetcher import WeatherFetcher, precipitation_factor

    try:
        weather = WeatherFetcher().fetch_current_weather(lat, lng)
    except FloodWatchError as e:
        print(f"FAILED: {e.code}: {e.message}")
        return None

    print(json.dumps(weather.to_dict()["current"], indent=2))
    print(f"\nRainy periods: {len(weather.precipitation)}, "
          f"precipitation factor: {precipitation_factor(weather.precipitation):.2f}")
    return weather


def step_5_nearby(lat, lng, radius):
    """Run the full nearby-stations request."""
    print("\n" + "="*60)
    print("STEP 5: Full nearby-stations request")
    print("="*60)

    from floodwatch.pipeline.river_service import RiverService

    service = RiverService(show_progress=True)
    try:
        result = service.get_nearby_stations(lat, lng, radius)
    except FloodWatchError as e:
        print(f"FAILED: {e.code}: {e.message}")
        return None
    finally:
        service.close()

    print(f"\n{result['message']}")
    for river in result["rivers"][:10]:
        print(f"  {river['id']}  {river['distance']:6.2f} mi  stage={river['stage']}  "
              f"{river['floodStatus']:<14} risk={river['riskScore']:5.1f} ({river['riskLevel']}) "
              f"[{river['floodStages']['source']}]")
    return result


def run_all(lat, lng, radius, site_id):
    results = {}

    fetched = step_1_fetch_stations(lat, lng, radius)
    results["step1_fetch"] = fetched is not None

    if fetched is not None:
        results["step2_series"] = step_2_series(*fetched) is not None
    else:
        results["step2_series"] = False

    results["step3_flood_stages"] = step_3_flood_stages(site_id) is not None
    results["step4_weather"] = step_4_weather(lat, lng) is not None
    results["step5_nearby"] = step_5_nearby(lat, lng, radius) is not None

    print("\n" + "="*60)
    print("SMOKE SUMMARY")
    print("="*60)
    for step, passed in results.items():
        status = "PASS" if passed else "FAIL"
        print(f"  {step}: {status}")

    return results


def main():
    parser = argparse.ArgumentParser(description="Smoke-check the live FloodWatch pipeline")
    parser.add_argument(
        "--step",
        choices=["1", "2", "3", "4", "5", "all"],
        default="all",
        help="Which step to run"
    )
    parser.add_argument("--lat", type=float, default=DEFAULT_LAT)
    parser.add_argument("--lng", type=float, default=DEFAULT_LNG)
    parser.add_argument("--radius", type=float, default=DEFAULT_RADIUS)
    parser.add_argument("--site", default=DEFAULT_SITE)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if args.step == "1":
        step_1_fetch_stations(args.lat, args.lng, args.radius)
    elif args.step == "2":
        fetched = step_1_fetch_stations(args.lat, args.lng, args.radius)
        if fetched is not None:
            step_2_series(*fetched)
    elif args.step == "3":
        step_3_flood_stages(args.site)
    elif args.step == "4":
        step_4_weather(args.lat, args.lng)
    elif args.step == "5":
        step_5_nearby(args.lat, args.lng, args.radius)
    else:
        run_all(args.lat, args.lng, args.radius, args.site)


if __name__ == "__main__":
    main()
