"""Port for the text-extraction rules applied to remote responses."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class PatternLibraryPort(Protocol):
    """One method per extraction need.

    Every extractor returns ``None`` when its pattern does not match, so
    the resolver can decide which fallback applies.
    """

    def video_token(self, video_info: str) -> str | None: ...

    def info_format_map(self, video_info: str) -> str | None: ...

    def has_age_gate(self, html: str) -> bool: ...

    def web_page_format_map(self, html: str) -> str | None: ...

    def player_script_url(self, html: str) -> str | None: ...

    def signature_function_name(self, player_script: str) -> str | None: ...

    def dash_manifest_url(self, text: str) -> str | None: ...

    def dash_signature(self, manifest_url: str) -> str | None: ...

    def replace_dash_signature(self, manifest_url: str, signature: str) -> str: ...

    @property
    def age_signature_script(self) -> str | None:
        """Script defining the age-gate decrypt function, if one is known."""
        ...

    @property
    def age_signature_function(self) -> str: ...
