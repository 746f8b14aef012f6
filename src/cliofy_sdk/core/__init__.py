"""Core components for the Cliofy SDK.

Request pipeline, refresh coordination and error mapping shared by the
domain client and the identity exchange.
"""

from __future__ import annotations

from .errors import ErrorFactory
from .http_executor import AuthenticatedExecutor
from .refresh import RefreshCoordinator

__all__ = [
    "ErrorFactory",
    "AuthenticatedExecutor",
    "RefreshCoordinator",
]
