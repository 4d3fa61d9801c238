"""YouTube stream-URL resolution: patterns, script capture, decryption."""

from __future__ import annotations

from .decryptor import SignatureDecryptor
from .format_map import FormatMapParser, FormatMapResult
from .js_capture import JsFragmentCapturer
from .patterns import PatternSet, RegexPatternLibrary, load_pattern_library
from .resolver import YouTubeStreamResolver

__all__ = [
    "FormatMapParser",
    "FormatMapResult",
    "JsFragmentCapturer",
    "PatternSet",
    "RegexPatternLibrary",
    "SignatureDecryptor",
    "YouTubeStreamResolver",
    "load_pattern_library",
]
