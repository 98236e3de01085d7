"""LibreSpeed client library -- latency, throughput, and server selection."""

from .api import ServerListAPI
from .cancel import CancelToken
from .client import LibreSpeedClient
from .config import MeasurementConfig
from .errors import (
    NoServerAvailable,
    NoSuccessfulProbes,
    ServerListError,
    SpeedtestError,
    TestCancelled,
)
from .latency import PingResult, PingSampler
from .progress import ProgressEvent, ProgressFeed
from .result import SpeedTestResult
from .selection import ServerSelector
from .server import Server
from .stats import (
    StreamStats,
    calculate_jitter,
    calculate_mean,
    calculate_speed_mbps,
    format_bytes,
    format_latency,
    format_speed,
)
from .transfer import (
    DownloadTransfer,
    ThroughputPool,
    Transfer,
    TransferResult,
    UploadTransfer,
)

__all__ = [
    "CancelToken",
    "DownloadTransfer",
    "LibreSpeedClient",
    "MeasurementConfig",
    "NoServerAvailable",
    "NoSuccessfulProbes",
    "PingResult",
    "PingSampler",
    "ProgressEvent",
    "ProgressFeed",
    "Server",
    "ServerListAPI",
    "ServerListError",
    "ServerSelector",
    "SpeedTestResult",
    "SpeedtestError",
    "StreamStats",
    "TestCancelled",
    "ThroughputPool",
    "Transfer",
    "TransferResult",
    "UploadTransfer",
    "calculate_jitter",
    "calculate_mean",
    "calculate_speed_mbps",
    "format_bytes",
    "format_latency",
    "format_speed",
]
