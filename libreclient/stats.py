"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Sequence


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class StreamStats:
    """Per-worker counters collected by the throughput pool."""

    id: int = 0
    bytes_transferred: int = 0
    requests: int = 0
    errors: int = 0
    duration_s: float = 0.0
    speed_mbps: float = 0.0

    def calculate(self) -> None:
        self.speed_mbps = calculate_speed_mbps(self.bytes_transferred, self.duration_s)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bytes": self.bytes_transferred,
            "requests": self.requests,
            "errors": self.errors,
            "duration_s": round(self.duration_s, 3),
            "speed_mbps": round(self.speed_mbps, 2),
        }


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def calculate_mean(samples: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for no samples."""
    if not samples:
        return 0.0
    return statistics.fmean(samples)


def calculate_jitter(samples: Sequence[float]) -> float:
    """Root-mean-square deviation of *samples* from their mean."""
    if len(samples) < 2:
        return 0.0
    mean = statistics.fmean(samples)
    return math.sqrt(statistics.fmean((s - mean) ** 2 for s in samples))


def calculate_speed_mbps(bytes_total: int, seconds: float) -> float:
    """Megabits per second for *bytes_total* moved in *seconds*."""
    if seconds <= 0:
        return 0.0
    return bytes_total * 8 / 1_000_000 / seconds


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if math.isinf(latency_ms):
        return "unreachable"
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"


def format_bytes(count: int) -> str:
    """Human-readable byte count (decimal units, like the speed figures)."""
    if count >= 1_000_000_000:
        return f"{count / 1_000_000_000:.2f} GB"
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f} MB"
    if count >= 1_000:
        return f"{count / 1_000:.1f} kB"
    return f"{count} B"
