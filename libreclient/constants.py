"""
Shared constants used across all client modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "librespeed-tui/1.0"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
}

# Byte counts must reflect what went over the wire, not a decompressed body.
DOWNLOAD_HEADERS = {"Accept-Encoding": "identity"}
UPLOAD_HEADERS = {"Content-Type": "application/octet-stream"}

# ---------------------------------------------------------------------------
# LibreSpeed backend
# ---------------------------------------------------------------------------

SERVER_LIST_URL = "https://librespeed.org/backend-servers/servers.php"

DEFAULT_DOWNLOAD_PATH = "garbage.php"
DEFAULT_UPLOAD_PATH = "empty.php"
DEFAULT_PING_PATH = "empty.php"
DEFAULT_GET_IP_PATH = "getIP.php"

DEFAULT_MAX_SERVERS = 10

# ---------------------------------------------------------------------------
# Connection limits
# ---------------------------------------------------------------------------

MIN_CONNECTIONS = 1
MAX_CONNECTIONS = 32
DEFAULT_CONNECTIONS = 3

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 10
DEFAULT_DURATION = 15.0          # seconds for download / upload
MIN_DURATION = 1.0
MAX_DURATION = 300.0
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100

PING_TIMEOUT = 5.0               # per-probe round-trip timeout
CONNECT_TIMEOUT = 5.0
SOCK_READ_TIMEOUT = 10.0
RETRY_DELAY = 0.1                # pause after a transient transfer error

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

READ_SIZE = 64 * 1024            # bounded read increment for download bodies
DEFAULT_CHUNK_MB = 100           # ckSize query parameter for garbage.php
MAX_CHUNK_MB = 1024
DEFAULT_UPLOAD_SIZE = 1024 * 1024
MAX_UPLOAD_SIZE = 64 * 1024 * 1024
