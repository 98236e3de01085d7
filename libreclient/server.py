"""
LibreSpeed server record.

A server is a base URL plus four logical endpoints (download, upload, ping,
client IP).  Each endpoint may be relative to the base or an absolute URL.
The ping phase writes the measured latency and jitter back onto the record.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urljoin, urlsplit

from .constants import (
    DEFAULT_DOWNLOAD_PATH,
    DEFAULT_GET_IP_PATH,
    DEFAULT_PING_PATH,
    DEFAULT_UPLOAD_PATH,
)


@dataclass
class Server:
    """A single LibreSpeed test server."""

    name: str
    base_url: str
    download_url: str = DEFAULT_DOWNLOAD_PATH
    upload_url: str = DEFAULT_UPLOAD_PATH
    ping_url: str = DEFAULT_PING_PATH
    get_ip_url: str = DEFAULT_GET_IP_PATH
    id: Optional[int] = None
    sponsor: str = ""

    # Populated by the ping phase.
    latency_ms: float = 0.0
    jitter_ms: float = 0.0

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> Server:
        """Build a server from one entry of the public server-list JSON."""
        base_url = data.get("server") or ""
        if base_url.startswith("//"):
            base_url = "https:" + base_url
        if not base_url.endswith("/"):
            base_url += "/"

        name = data.get("name") or ""
        sponsor = data.get("sponsor") or ""
        raw_id = data.get("id")

        return cls(
            name=f"{name} ({sponsor})" if sponsor else name,
            base_url=base_url,
            download_url=data.get("dlURL") or DEFAULT_DOWNLOAD_PATH,
            upload_url=data.get("ulURL") or DEFAULT_UPLOAD_PATH,
            ping_url=data.get("pingURL") or DEFAULT_PING_PATH,
            get_ip_url=data.get("getIpURL") or DEFAULT_GET_IP_PATH,
            id=int(raw_id) if raw_id is not None else None,
            sponsor=sponsor,
        )

    # -- Derived URLs -------------------------------------------------------

    def endpoint_url(self, endpoint: str) -> str:
        """Resolve *endpoint* against the base URL unless it is absolute."""
        parts = urlsplit(endpoint)
        if parts.scheme and parts.netloc:
            return endpoint
        base = self.base_url if self.base_url.endswith("/") else self.base_url + "/"
        return urljoin(base, endpoint)

    @property
    def download_endpoint(self) -> str:
        return self.endpoint_url(self.download_url)

    @property
    def upload_endpoint(self) -> str:
        return self.endpoint_url(self.upload_url)

    @property
    def ping_endpoint(self) -> str:
        return self.endpoint_url(self.ping_url)

    @property
    def get_ip_endpoint(self) -> str:
        return self.endpoint_url(self.get_ip_url)

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sponsor": self.sponsor,
            "base_url": self.base_url,
            "latency_ms": round(self.latency_ms, 2),
            "jitter_ms": round(self.jitter_ms, 2),
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.base_url})"
