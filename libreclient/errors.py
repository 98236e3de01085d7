"""
Exception types raised by the measurement library.

``SpeedtestError`` covers the failures a caller is expected to report.
``TestCancelled`` is the "stopped" outcome of a cancelled run and is kept
outside that hierarchy so ``except SpeedtestError`` never hides a stop
request.
"""
from __future__ import annotations

import asyncio

import aiohttp

# Errors a single request may hit on a flaky network.  Call sites that
# tolerate failure catch exactly this tuple.
TRANSIENT_ERRORS = (aiohttp.ClientError, OSError, asyncio.TimeoutError)


class SpeedtestError(Exception):
    """Base class for measurement failures."""


class NoSuccessfulProbes(SpeedtestError):
    """Every latency probe against a server failed."""

    def __init__(self, server_name: str = "", attempts: int = 0) -> None:
        self.server_name = server_name
        self.attempts = attempts
        target = f" to {server_name}" if server_name else ""
        super().__init__(f"No successful probes{target} ({attempts} attempted)")


class NoServerAvailable(SpeedtestError):
    """Server selection had nothing usable to choose from."""


class ServerListError(SpeedtestError):
    """The server list could not be fetched or parsed."""


class TestCancelled(Exception):
    """A run was stopped by its cancellation token."""

    # Keep pytest from collecting this as a test class.
    __test__ = False
