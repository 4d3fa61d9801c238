"""Parser for the comma-separated format descriptor list.

Input shape (values percent-encoded)::

    itag=18&url=http%3A%2F%2F...&sig=ABC,itag=22&url=...&s=XYZ,...

Each descriptor becomes a ``FormatEntry``. Descriptors without an itag or
URL are malformed and skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import unquote

import structlog

from ytresolve.domain.entities.resolution import FormatEntry, SignatureMode

from .decryptor import SignatureDecryptor

log = structlog.get_logger(__name__)


@dataclass
class FormatMapResult:
    """Outcome of one left-to-right scan over a format map."""

    selected: FormatEntry | None = None  # requested code, short-circuited
    candidates: dict[int, FormatEntry] = field(default_factory=dict)
    degraded: list[int] = field(default_factory=list)  # undecryptable codes
    needs_web_page: bool = False


class _NeedsWebPage(Exception):
    pass


class FormatMapParser:
    """Scans a format map, decrypting short tokens when a context allows it."""

    def parse(
        self,
        fmt_map: str,
        requested_code: int,
        *,
        mode: SignatureMode,
        decryptor: SignatureDecryptor | None = None,
    ) -> FormatMapResult:
        result = FormatMapResult()
        for descriptor in fmt_map.split(","):
            if not descriptor:
                continue
            try:
                entry = self._parse_descriptor(descriptor, mode, decryptor, result)
            except _NeedsWebPage:
                log.debug("format_map_needs_web_page", mode=mode.value)
                result.needs_web_page = True
                return result
            if entry is None:
                continue

            if entry.code == requested_code:
                log.debug("format_requested_found", code=entry.code)
                result.selected = entry
                return result
            result.candidates[entry.code] = entry

        return result

    def _parse_descriptor(
        self,
        descriptor: str,
        mode: SignatureMode,
        decryptor: SignatureDecryptor | None,
        result: FormatMapResult,
    ) -> FormatEntry | None:
        code: int | None = None
        url: str | None = None
        signature: str | None = None
        degraded = False

        for param in descriptor.split("&"):
            if not param:
                continue
            key, _, value = param.partition("=")
            if key == "itag":
                try:
                    code = int(value)
                except ValueError:
                    code = None
            elif key == "url":
                url = unquote(value)
            elif key == "sig":
                signature = unquote(value)
            elif key == "s":
                if mode is SignatureMode.DEFERRED:
                    raise _NeedsWebPage
                signature = self._decrypt(unquote(value), mode, decryptor)
                degraded = not signature

        if code is None or not url:
            log.debug("format_descriptor_malformed", descriptor=descriptor[:80])
            return None
        if degraded:
            log.warning("format_signature_degraded", code=code)
            result.degraded.append(code)
            return None
        return FormatEntry(code=code, url=url, signature=signature)

    @staticmethod
    def _decrypt(
        token: str, mode: SignatureMode, decryptor: SignatureDecryptor | None
    ) -> str:
        if decryptor is None:
            return ""
        if mode is SignatureMode.AGE_GATE:
            return decryptor.decrypt_age(token)
        return decryptor.decrypt(token)
