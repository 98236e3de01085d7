"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import math
import os
from typing import Any, Dict, Optional, Sequence

from libreclient.result import SpeedTestResult
from libreclient.server import Server


def create_result_json(
    result: SpeedTestResult,
    selection: Optional[Sequence[Server]] = None,
) -> Dict[str, Any]:
    """Build a JSON-serialisable dict for a finished run."""
    data = result.to_dict()

    if result.ping is not None:
        data["latency"] = result.ping.to_dict()
    if result.download is not None:
        data["download"] = result.download.to_dict()
    if result.upload is not None:
        data["upload"] = result.upload.to_dict()

    if selection:
        # JSON has no infinity; unreachable candidates get null latency.
        data["serverSelection"] = [
            {
                **s.to_dict(),
                "latency_ms": None if math.isinf(s.latency_ms) else round(s.latency_ms, 2),
            }
            for s in selection
        ]

    return data


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


def format_text_result(result: SpeedTestResult) -> str:
    sep = "=" * 50
    mid = "-" * 50
    return (
        f"{sep}\n"
        f"LibreSpeed Results\n"
        f"{sep}\n"
        f"Server: {result.server.name}\n"
        f"IP: {result.client_ip or 'unknown'}\n"
        f"{mid}\n"
        f"Ping: {result.latency_ms:.1f} ms (jitter: {result.jitter_ms:.2f} ms)\n"
        f"Download: {result.download_mbps:.2f} Mbps\n"
        f"Upload: {result.upload_mbps:.2f} Mbps\n"
        f"{sep}"
    )
