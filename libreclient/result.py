"""
Full-run result record.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .latency import PingResult
from .server import Server
from .transfer import TransferResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SpeedTestResult:
    """Results from one ping / download / upload run against a server."""

    server: Server
    latency_ms: float
    jitter_ms: float
    download_mbps: float
    upload_mbps: float
    bytes_downloaded: int
    bytes_uploaded: int
    client_ip: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    # Phase details, kept for display.
    ping: Optional[PingResult] = field(default=None, compare=False, repr=False)
    download: Optional[TransferResult] = field(default=None, compare=False, repr=False)
    upload: Optional[TransferResult] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "server": self.server.to_dict(),
            "client_ip": self.client_ip,
            "ping": round(self.latency_ms, 2),
            "jitter": round(self.jitter_ms, 2),
            "download": {
                "speed_mbps": round(self.download_mbps, 2),
                "bytes": self.bytes_downloaded,
            },
            "upload": {
                "speed_mbps": round(self.upload_mbps, 2),
                "bytes": self.bytes_uploaded,
            },
        }

    def __str__(self) -> str:
        return (
            f"Ping: {self.latency_ms:.2f}ms (±{self.jitter_ms:.2f}ms) | "
            f"Download: {self.download_mbps:.2f} Mbps | "
            f"Upload: {self.upload_mbps:.2f} Mbps"
        )
