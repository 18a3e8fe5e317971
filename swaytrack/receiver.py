#!/usr/bin/env python3
"""
receiver.py -- UDP ingestion of IMU orientation packets.

Packet (ASCII, comma-separated, >= 8 fields):
  index, qW, qX, qY, qZ, faX, faY, faZ [, ...]

  index      ignored
  qW..qZ     sensor-frame (NED) orientation quaternion
  faX..faZ   free acceleration (passed through, unused by the estimator)
  ...        trailing fields ignored

Only the latest sample is kept: each accepted packet overwrites the shared
slot, so a burst between two consumer ticks collapses to its last packet.
"""

from __future__ import annotations

import logging
import math
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import NetworkError, ParseError

log = logging.getLogger(__name__)

DEFAULT_PORT = 8051
MIN_FIELDS   = 8
RECV_BUFSIZE = 1024
ERROR_BACKOFF = 0.05    # s, pause after a receive error
ERROR_LOG_EVERY = 100   # repeated receive errors logged once per this many


@dataclass(frozen=True)
class SensorSample:
    """One decoded orientation packet."""
    orientation: Tuple[float, float, float, float]          # [w, x, y, z] sensor frame
    free_acceleration: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    t: float = 0.0        # monotonic receive time (s)
    seq: int = 0          # accepted-packet count, 0 = initial value


IDENTITY_SAMPLE = SensorSample(orientation=(1.0, 0.0, 0.0, 0.0))


def _field(tokens: list, i: int) -> float:
    try:
        v = float(tokens[i])
    except ValueError:
        raise ParseError(f"field {i} is not numeric: {tokens[i]!r}") from None
    if not math.isfinite(v):
        raise ParseError(f"field {i} is not finite: {tokens[i]!r}")
    return v


def parse_packet(data: bytes, t: float = 0.0, seq: int = 0) -> SensorSample:
    """Decode one datagram.  Raises :class:`ParseError` if malformed."""
    # Non-ASCII bytes only matter if they land in a parsed field, where the
    # replacement character makes float() fail.
    text = data.decode("ascii", errors="replace")
    tokens = text.split(",")
    if len(tokens) < MIN_FIELDS:
        raise ParseError(f"expected >= {MIN_FIELDS} fields, got {len(tokens)}")
    qw, qx, qy, qz = (_field(tokens, i) for i in range(1, 5))
    fa = tuple(_field(tokens, i) for i in range(5, 8))
    return SensorSample(orientation=(qw, qx, qy, qz), free_acceleration=fa,
                        t=t, seq=seq)


class SharedSensorState:
    """
    Single-slot latest-value store shared by the receiver and the consumer.

    Samples are immutable, so swapping the reference under the lock is an
    atomic publish: readers see either the initial sample or a complete one.
    """

    def __init__(self, initial: SensorSample = IDENTITY_SAMPLE):
        self.lock = threading.Lock()
        self._sample = initial
        self._dirty = False

    def publish(self, sample: SensorSample) -> None:
        with self.lock:
            self._sample = sample
            self._dirty = True

    def consume(self) -> Tuple[SensorSample, bool]:
        """Return (latest sample, whether it is new) and clear the flag."""
        with self.lock:
            fresh = self._dirty
            self._dirty = False
            return self._sample, fresh

    def peek(self) -> SensorSample:
        with self.lock:
            return self._sample

    @property
    def dirty(self) -> bool:
        with self.lock:
            return self._dirty


class UDPReceiver:
    """Background UDP listener feeding a :class:`SharedSensorState`."""

    def __init__(self, state: SharedSensorState, port: int = DEFAULT_PORT,
                 host: str = "0.0.0.0"):
        self.state = state
        self.host = host
        self.port = port
        self.sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

        # Counters
        self.received = 0
        self.accepted = 0
        self.dropped = 0
        self.errors = 0     # receive-side OSErrors

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        return self.sock.getsockname()[:2] if self.sock else None

    def start(self) -> None:
        """Bind the socket and start the receive thread."""
        if self.running:
            return
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise NetworkError(f"Cannot bind UDP {self.host}:{self.port}: {e}") from e
        self.sock = sock
        self._stop.clear()
        self._thread = threading.Thread(target=self._recv_loop,
                                        name="swaytrack-udp", daemon=True)
        self._thread.start()
        log.info("UDP receiver listening on %s:%d", *self.bound_address)

    def stop(self, timeout: float = 2.0) -> None:
        """Signal the loop, close the socket to unblock recv, then join."""
        self._stop.set()
        sock, self.sock = self.sock, None
        if sock is not None:
            self._wake(sock)
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # ENOTCONN on UDP; the shutdown still wakes recvfrom
            sock.close()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                log.warning("UDP receive thread did not exit within %.1f s", timeout)
            self._thread = None
        log.info("UDP receiver stopped (%d accepted, %d dropped)",
                 self.accepted, self.dropped)

    def __enter__(self) -> "UDPReceiver":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    # ----------------------- Internal methods -----------------------

    @staticmethod
    def _wake(sock: socket.socket) -> None:
        """Send an empty datagram to *sock* so a pending recvfrom returns."""
        host, port = sock.getsockname()[:2]
        if host == "0.0.0.0":
            host = "127.0.0.1"
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as tx:
                tx.sendto(b"", (host, port))
        except OSError as e:
            log.debug("Wake-up datagram failed: %s", e)

    def handle_datagram(self, data: bytes) -> bool:
        """Parse and publish one datagram.  Returns False if it was dropped."""
        self.received += 1
        try:
            sample = parse_packet(data, t=time.monotonic(), seq=self.accepted + 1)
        except ParseError as e:
            self.dropped += 1
            log.debug("Dropped packet %r: %s", data[:64], e)
            return False
        self.accepted += 1
        self.state.publish(sample)
        return True

    def _recv_loop(self) -> None:
        """Main receive loop (runs in background thread)."""
        sock = self.sock
        errors = 0
        while not self._stop.is_set():
            try:
                data, _ = sock.recvfrom(RECV_BUFSIZE)
            except OSError as e:
                if self._stop.is_set():
                    break
                if sock.fileno() < 0:
                    log.error("UDP socket closed unexpectedly: %s", e)
                    break
                errors += 1
                self.errors += 1
                if errors % ERROR_LOG_EVERY == 1:
                    log.warning("UDP receive error (%d in a row): %s", errors, e)
                # back off; a persistent error would otherwise spin
                self._stop.wait(ERROR_BACKOFF)
                continue
            errors = 0
            if self._stop.is_set():
                break
            self.handle_datagram(data)
