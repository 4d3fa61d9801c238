"""Port for consumers of resolution events (e.g. a player UI)."""

from __future__ import annotations

from typing import Protocol


class ResolutionListener(Protocol):
    """Receives exactly one of the two events per resolution."""

    def on_resolved(self, stream_url: str, definition_code: int) -> None: ...

    def on_failed(self, message: str) -> None: ...
