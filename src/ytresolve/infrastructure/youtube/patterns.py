"""Regex pattern library for the video-info, watch-page and player responses.

The remote service changes its markup without notice, so every extraction
rule lives here as data. A YAML file can override any subset of the
defaults (see ``load_pattern_library``) without touching the resolver.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field, model_validator

log = structlog.get_logger(__name__)

# Characters allowed in (minified) JavaScript identifiers.
JS_NAME_CHARS = r"a-zA-Z0-9$_"

_NAME_CHARS_PLACEHOLDER = "{name_chars}"
_JSON_AMPERSAND = "\\u0026"

# Patterns that must expose the extracted value as capture group 1.
_VALUE_PATTERNS = (
    "video_token",
    "info_format_map",
    "web_page_format_map",
    "player_script",
    "signature_function_name",
    "dash_manifest",
    "dash_signature",
)


def _expand(pattern: str) -> str:
    return pattern.replace(_NAME_CHARS_PLACEHOLDER, JS_NAME_CHARS)


class PatternSet(BaseModel):
    """Validated set of extraction patterns (versioned as a whole)."""

    version: str = Field(default="builtin", description="Free-form version tag.")
    video_token: str = Field(default=r"(?:^|&)token=([^&]+)")
    info_format_map: str = Field(default=r"(?:^|&)url_encoded_fmt_stream_map=([^&]+)")
    age_gate: str = Field(default=r'player-age-gate-content"')
    web_page_format_map: str = Field(
        default=r'"url_encoded_fmt_stream_map":\s*"([^"]+)"'
    )
    player_script: str = Field(default=r'"assets":.+?"js":\s*"([^"]+)"')
    signature_function_name: str = Field(
        default=r"""["']signature["']\s*,\s*([{name_chars}]+)\(""",
        description="'{name_chars}' expands to the JS identifier class.",
    )
    dash_manifest: str = Field(default=r'"dashmpd":\s*"([^"]+)"')
    dash_signature: str = Field(default=r"/s/([\w\.]+)")
    age_signature_script: str | None = Field(
        default=None,
        description="JavaScript defining the age-gate decrypt function.",
    )
    age_signature_function: str = Field(default="decryptAgeSignature")

    @model_validator(mode="after")
    def _check_patterns(self) -> "PatternSet":
        for name in (*_VALUE_PATTERNS, "age_gate"):
            raw = getattr(self, name)
            try:
                compiled = re.compile(_expand(raw))
            except re.error as exc:
                raise ValueError(f"Pattern {name!r} does not compile: {exc}") from exc
            if name in _VALUE_PATTERNS and compiled.groups < 1:
                raise ValueError(f"Pattern {name!r} needs a capture group")
        return self


class RegexPatternLibrary:
    """``PatternLibraryPort`` implementation backed by a ``PatternSet``."""

    def __init__(self, patterns: PatternSet | None = None) -> None:
        self._patterns = patterns or PatternSet()
        self._compiled: dict[str, re.Pattern[str]] = {
            name: re.compile(_expand(getattr(self._patterns, name)), re.DOTALL)
            for name in (*_VALUE_PATTERNS, "age_gate")
        }

    @property
    def version(self) -> str:
        return self._patterns.version

    @property
    def age_signature_script(self) -> str | None:
        return self._patterns.age_signature_script

    @property
    def age_signature_function(self) -> str:
        return self._patterns.age_signature_function

    def _first_group(self, name: str, text: str) -> str | None:
        match = self._compiled[name].search(text)
        return match.group(1) if match else None

    def video_token(self, video_info: str) -> str | None:
        return self._first_group("video_token", video_info)

    def info_format_map(self, video_info: str) -> str | None:
        return self._first_group("info_format_map", video_info)

    def has_age_gate(self, html: str) -> bool:
        return self._compiled["age_gate"].search(html) is not None

    def web_page_format_map(self, html: str) -> str | None:
        fmt_map = self._first_group("web_page_format_map", html)
        if fmt_map is None:
            return None
        return fmt_map.replace(_JSON_AMPERSAND, "&")

    def player_script_url(self, html: str) -> str | None:
        url = self._first_group("player_script", html)
        if url is None:
            return None
        return normalize_player_url(url)

    def signature_function_name(self, player_script: str) -> str | None:
        return self._first_group("signature_function_name", player_script)

    def dash_manifest_url(self, text: str) -> str | None:
        url = self._first_group("dash_manifest", text)
        return url.replace("\\", "") if url else None

    def dash_signature(self, manifest_url: str) -> str | None:
        return self._first_group("dash_signature", manifest_url)

    def replace_dash_signature(self, manifest_url: str, signature: str) -> str:
        """Swap the ``/s/<token>`` segment for ``/signature/<signature>``."""
        return self._compiled["dash_signature"].sub(
            lambda _: f"/signature/{signature}", manifest_url, count=1
        )


def normalize_player_url(url: str) -> str:
    """Unescape a player script reference and make it absolute."""
    url = url.replace("\\", "")
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("/"):
        return "https://youtube.com" + url
    return url


def _read_yaml_patterns(path: Path) -> dict[str, Any]:
    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Pattern YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_pattern_library(path: Path | None = None) -> RegexPatternLibrary:
    """Build a pattern library, overriding defaults with *path* if given."""
    if path is None:
        return RegexPatternLibrary()
    if not path.exists():
        raise FileNotFoundError(path)
    patterns = PatternSet.model_validate(_read_yaml_patterns(path))
    log.info("pattern_library_loaded", path=str(path), version=patterns.version)
    return RegexPatternLibrary(patterns)
