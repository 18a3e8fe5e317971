#!/usr/bin/env python3
"""
send_packets.py — Send synthetic IMU orientation packets over UDP

Emulates a wireless IMU for bench testing the tracker without hardware.
The first packets hold the neutral pose; after that the sensor sways in
pitch and roll (and optionally turns in yaw) as slow sine waves.

Packet format (ASCII):
  index,qW,qX,qY,qZ,faX,faY,faZ

Usage:
  python3 scripts/send_packets.py                       # localhost:8051, 100 Hz
  python3 scripts/send_packets.py -H 10.0.0.5 -p 9000   # explicit target
  python3 scripts/send_packets.py --pitch 20 --roll 10  # sway amplitudes (deg)
  python3 scripts/send_packets.py --yaw-rate 15         # turn at 15 deg/s
  python3 scripts/send_packets.py --bad-every 50        # inject malformed packets
  python3 scripts/send_packets.py -n 1000               # stop after 1000 packets
"""

import argparse
import math
import os
import signal
import socket
import sys
import time

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from swaytrack.frames import DEFAULT_MAPPING, AxisMapping
from swaytrack.quat import from_euler

_stop = False


def make_packet(index, pitch, yaw, roll, mapping=DEFAULT_MAPPING, accel=(0.0, 0.0, 0.0)):
    """Encode a target-frame Euler pose as a sensor-frame packet."""
    qw, qx, qy, qz = mapping.invert(from_euler(pitch, yaw, roll))
    fa = ",".join(f"{a:.5f}" for a in accel)
    return f"{index},{qw:.7f},{qx:.7f},{qy:.7f},{qz:.7f},{fa}".encode("ascii")


def main():
    global _stop
    ap = argparse.ArgumentParser(description="Synthetic IMU UDP sender")
    ap.add_argument("-H", "--host", default="127.0.0.1")
    ap.add_argument("-p", "--port", type=int, default=8051)
    ap.add_argument("-r", "--rate", type=float, default=100.0, help="Packets per second")
    ap.add_argument("-n", "--num", type=int, default=0, help="Stop after N packets (0=forever)")
    ap.add_argument("--pitch", type=float, default=15.0, help="Pitch amplitude (deg)")
    ap.add_argument("--roll", type=float, default=8.0, help="Roll amplitude (deg)")
    ap.add_argument("--period", type=float, default=4.0, help="Sway period (s)")
    ap.add_argument("--yaw-rate", type=float, default=0.0, help="Yaw rate (deg/s)")
    ap.add_argument("--hold", type=float, default=1.0, help="Neutral hold at start (s)")
    ap.add_argument("--axis-map", default=str(DEFAULT_MAPPING))
    ap.add_argument("--bad-every", type=int, default=0,
                    help="Send a malformed packet every N packets (0=never)")
    args = ap.parse_args()

    mapping = AxisMapping.parse(args.axis_map)
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    signal.signal(signal.SIGINT, lambda *_: globals().update(_stop=True))

    print(f"Sending to {args.host}:{args.port} @ {args.rate:.0f} Hz  (Ctrl+C to stop)")
    dt = 1.0 / args.rate
    t0 = time.monotonic()
    sent = bad = 0

    while not _stop:
        t = time.monotonic() - t0
        if args.bad_every and sent and sent % args.bad_every == 0:
            sock.sendto(f"{sent},garbage".encode("ascii"), (args.host, args.port))
            bad += 1
        if t < args.hold:
            pitch = roll = yaw = 0.0
        else:
            w = 2 * math.pi * (t - args.hold) / args.period
            pitch = args.pitch * math.sin(w)
            roll = args.roll * math.sin(2 * w)
            yaw = (args.yaw_rate * (t - args.hold)) % 360.0
        sock.sendto(make_packet(sent, pitch, yaw, roll, mapping), (args.host, args.port))
        sent += 1

        sys.stdout.write(f"\r  #{sent:6d}  pitch={pitch:+6.1f}  roll={roll:+6.1f}  yaw={yaw:6.1f}")
        sys.stdout.flush()

        if 0 < args.num <= sent:
            break
        time.sleep(max(0.0, t0 + sent * dt - time.monotonic()))

    sock.close()
    print(f"\n{sent} packets sent ({bad} malformed)")


if __name__ == "__main__":
    main()
