"""HTTP client utilities for the Cliofy SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from .telemetry import SDK_NAME, SDK_VERSION

if TYPE_CHECKING:
    from .config import StoredConfig

USER_AGENT = f"{SDK_NAME}/{SDK_VERSION} Python"


def default_headers() -> dict[str, str]:
    """Headers sent on every request."""
    return {
        "User-Agent": USER_AGENT,
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def create_async_http_client(
    config: StoredConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create configured async HTTP client.

    Args:
        config: Stored configuration supplying endpoint and timeout.
        transport: Optional transport override, used by tests.

    Returns:
        Configured httpx.AsyncClient.
    """
    return httpx.AsyncClient(
        base_url=config.endpoint_str,
        timeout=httpx.Timeout(config.timeout_seconds),
        headers=default_headers(),
        follow_redirects=False,
        transport=transport,
    )
