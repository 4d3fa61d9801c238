"""Port for the HTTP collaborator used by the resolver."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable


@runtime_checkable
class HttpClientPort(Protocol):
    """Generic GET client returning raw response bytes.

    Implementations own timeouts and transport-level retries. Any failure
    is raised as ``TransportError`` carrying the transport's message.
    """

    async def get(
        self, url: str, params: Mapping[str, str] | None = None
    ) -> bytes: ...
