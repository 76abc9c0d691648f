#!/usr/bin/env python3
"""
Qibla compass command line.

Modes:
- bearing:  print the Qibla bearing and declination for a coordinate
- simulate: run a full session on simulated sensors sweeping through the
            Qibla direction and report alignment events
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from qibla.builder import Builder
from qibla.geo.bearing_math import Coordinate, cardinal_direction, qibla_bearing
from qibla.geo.declination import DeclinationEstimator
from qibla.heading.mock_sensors import SimulatedDevice
from qibla.telemetry.compass_logger import get_compass_logger
from qibla.utils.config import Config

log = logging.getLogger("qibla")


class _PrintHaptics:
    def pulse(self) -> None:
        print("  · pulse")


class _PrintAnnouncer:
    def announce(self, message: str) -> None:
        print(f"  🔊 {message}")


def _coordinate(args: argparse.Namespace) -> Coordinate:
    try:
        return Coordinate(args.lat, args.lon)
    except ValueError as e:
        raise SystemExit(f"❌ {e}")


def cmd_bearing(args: argparse.Namespace) -> int:
    coordinate = _coordinate(args)
    qibla = qibla_bearing(coordinate)
    declination = DeclinationEstimator().estimate(coordinate)
    print(f"🧭 Qibla bearing: {qibla:.2f}° ({cardinal_direction(qibla)})")
    print(f"   Declination estimate: {declination:+.2f}°")
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    coordinate = _coordinate(args)
    sweep = args.sweep_rate

    device = SimulatedDevice(
        heading_fn=lambda t: args.start_heading + sweep * t,
        noise_deg=args.noise,
        seed=args.seed,
    )
    builder = Builder()
    sources = builder.build_sources(
        magnetometer=device.magnetometer,
        accelerometer=device.accelerometer,
        compass=device.compass,
    )
    aggregator = builder.build_aggregator(sources)
    engine = builder.build_engine(args.tolerance)
    compass_logger = get_compass_logger(Path(args.log_dir)) if args.log_dir else None
    session = builder.build_session(
        aggregator,
        engine,
        haptics=_PrintHaptics(),
        announcer=_PrintAnnouncer(),
        compass_logger=compass_logger,
    )
    session.preferences.announce_accessibility = True

    def on_alignment(update) -> None:
        if update.changed:
            state = "✓ aligned" if update.aligned else f"✗ {update.direction.value} {update.abs_delta_deg:.0f}°"
            print(f"[{update.timestamp:10.3f}] heading={update.heading_deg:6.1f}° {state}")

    session.subscribe(on_alignment)
    target = session.set_location(coordinate)
    print(f"🧭 Qibla bearing {target:.2f}°, sweeping from {args.start_heading}° at {sweep}°/s")

    session.start()
    device.start_generator(interval_ms=aggregator.update_interval_ms)
    try:
        time.sleep(args.duration)
    except KeyboardInterrupt:
        print("\n⏹️  Interrupted")
    finally:
        device.stop_generator()
        snapshot = session.snapshot()
        session.close()
        if compass_logger is not None:
            compass_logger.close()

    print(f"📊 Final: {snapshot}")
    print(f"   Samples: {device.sample_count}, pulses: {session.pulse_count}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qibla-compass", description=__doc__,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--log-level", default=Config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p_bearing = sub.add_parser("bearing", help="Qibla bearing for a coordinate")
    p_bearing.add_argument("--lat", type=float, required=True)
    p_bearing.add_argument("--lon", type=float, required=True)
    p_bearing.set_defaults(func=cmd_bearing)

    p_sim = sub.add_parser("simulate", help="Run a session on simulated sensors")
    p_sim.add_argument("--lat", type=float, required=True)
    p_sim.add_argument("--lon", type=float, required=True)
    p_sim.add_argument("--start-heading", type=float, default=0.0)
    p_sim.add_argument("--sweep-rate", type=float, default=30.0, help="degrees per second")
    p_sim.add_argument("--duration", type=float, default=12.0, help="seconds")
    p_sim.add_argument("--tolerance", type=float, default=Config.ALIGNMENT_TOLERANCE_DEG)
    p_sim.add_argument("--noise", type=float, default=0.5, help="heading noise std (deg)")
    p_sim.add_argument("--seed", type=int, default=None)
    p_sim.add_argument("--log-dir", default=None, help="write session logs here")
    p_sim.set_defaults(func=cmd_simulate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
