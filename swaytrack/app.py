#!/usr/bin/env python3
"""
app.py -- Console sway tracker.

Listens for IMU orientation packets over UDP, ticks the pendulum estimator
at a fixed rate and streams the estimated position to the console.

Usage
-----
  python3 -m swaytrack.app                          # port 8051, L = 1.0313 m
  python3 -m swaytrack.app -p 9000 -L 0.95          # explicit port / length
  python3 -m swaytrack.app --roll-offset -90        # side-mounted sensor
  python3 -m swaytrack.app --max-sway 0.5           # clamp horizontal sway
  python3 -m swaytrack.app --csv > session.csv      # log to CSV

Workflow
--------
1. Stand upright -- the first packet received is the neutral pose.
2. Lean / sway -- position updates every tick.
3. ``kill -USR1 <pid>`` re-captures the neutral pose.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import time

from .config import TrackerConfig
from .errors import ConfigurationError, NetworkError
from .frames import DEFAULT_MAPPING
from .receiver import DEFAULT_PORT
from .tracker import PendulumTracker


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="IMU pendulum sway tracker")
    ap.add_argument("-p", "--port", type=int, default=DEFAULT_PORT,
                    help=f"UDP listen port (default {DEFAULT_PORT})")
    ap.add_argument("--host", default="0.0.0.0", help="Listen address")
    ap.add_argument("-L", "--length", type=float, default=1.0313,
                    help="Pendulum length, anchor -> body (m)")
    ap.add_argument("--max-sway", type=float, default=None,
                    help="Clamp horizontal sway radius (m, default off)")
    ap.add_argument("--roll-offset", type=float, default=0.0,
                    help="Sensor mounting roll offset (deg)")
    ap.add_argument("--axis-map", default=str(DEFAULT_MAPPING),
                    help="Signed sensor axes for target x,y,z (default %(default)s)")
    ap.add_argument("--reference-tilt", dest="strip_heading", action="store_false",
                    help="Measure tilt without removing the current heading "
                         "(legacy; heading leaks into tilt after a yawed calibration)")
    ap.add_argument("--anchor", type=float, nargs=3, default=(0.0, 0.0, 0.0),
                    metavar=("X", "Y", "Z"), help="Anchor position (m)")
    ap.add_argument("-r", "--rate", type=float, default=60.0,
                    help="Tick rate (Hz, default 60)")
    ap.add_argument("--csv", action="store_true", help="CSV output mode")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def config_from_args(args: argparse.Namespace) -> TrackerConfig:
    return TrackerConfig(
        listen_port=args.port,
        listen_host=args.host,
        pendulum_length=args.length,
        max_sway_radius=args.max_sway,
        mounting_roll_deg=args.roll_offset,
        axis_mapping=args.axis_map,
        strip_heading=args.strip_heading,
    )


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    if args.rate <= 0:
        sys.exit("ERROR: --rate must be > 0")

    try:
        tracker = PendulumTracker(config_from_args(args))
        tracker.start()
    except (ConfigurationError, NetworkError) as e:
        sys.exit(f"ERROR: {e}")

    stop = False
    reset_requested = False
    def _sigint(*_):
        nonlocal stop
        stop = True
    def _sigusr1(*_):
        nonlocal reset_requested
        reset_requested = True
    signal.signal(signal.SIGINT, _sigint)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, _sigusr1)

    if args.csv:
        print("tick,t,x,y,z,pitch,roll,yaw_delta,clamped")
    else:
        print(f"\n{'='*62}")
        print(f"  Sway tracker -- UDP {args.host}:{args.port}")
        print(f"  L = {args.length:.4f} m   roll offset = {args.roll_offset:+.1f} deg")
        print(f"{'='*62}\n")
        print("  >> Stand upright -- first packet sets the neutral pose ...\n")

    period = 1.0 / args.rate
    t0 = time.monotonic()
    next_t = t0
    last_seq = -1

    try:
        while not stop:
            # Handled here so a reset never lands in the middle of a tick.
            if reset_requested:
                reset_requested = False
                tracker.reset()
            pos = tracker.tick(args.anchor)
            est = tracker.last_estimate
            seq = tracker.state.peek().seq

            if pos is not None and est is not None and seq != last_seq:
                last_seq = seq
                if args.csv:
                    print(f"{tracker.ticks},{time.monotonic() - t0:.4f},"
                          f"{pos[0]:.5f},{pos[1]:.5f},{pos[2]:.5f},"
                          f"{est.pitch_deg:.2f},{est.roll_deg:.2f},"
                          f"{est.yaw_delta_deg:.2f},{1 if est.clamped else 0}")
                else:
                    live = (f"\r  X={pos[0]:+7.3f}  Y={pos[1]:+7.3f}  Z={pos[2]:+7.3f} m  "
                            f"pitch={est.pitch_deg:+6.1f}  roll={est.roll_deg:+6.1f}  "
                            f"yaw={est.yaw_delta_deg:+6.1f}"
                            f"{'  [CLAMP]' if est.clamped else '         '}")
                    sys.stdout.write(live)
                    sys.stdout.flush()

            next_t += period
            delay = next_t - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            else:
                next_t = time.monotonic()
    finally:
        tracker.stop()

    # -- Shutdown --
    elapsed = time.monotonic() - t0
    rx = tracker.receiver
    if not args.csv:
        print(f"\n\n{'='*62}")
        print(f"  {tracker.ticks} ticks in {elapsed:.1f} s  "
              f"({tracker.updates} position updates)")
        print(f"  Packets: {rx.received} received, {rx.accepted} accepted, "
              f"{rx.dropped} dropped")
        print(f"{'='*62}\n")


if __name__ == "__main__":
    main()
