"""Shared test fixtures for the ytresolve test suite."""

from __future__ import annotations

from collections.abc import Mapping
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import quote

import pytest

from ytresolve.domain.ports.http_client import HttpClientPort
from ytresolve.domain.ports.script_evaluator import ScriptEvaluatorPort

# JSON escape for "&" as it appears inside the watch page.
JSON_AMPERSAND = "\\" + "u0026"

PLAYER_URL = "https://www.youtube.com/s/player/abc/base.js"

# Minified player script: "sig" reverses the token and drops two chars.
PLAYER_SCRIPT = (
    "var Xy={r:function(a,b){a.reverse()},s:function(a,b){a.splice(0,b)}};"
    'function sig(a){a=a.split("");Xy.r(a,3);Xy.s(a,2);return a.join("")}'
    'var cfg={"signature",sig(p.s)};'
)


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------


def _make_video_info(
    *,
    token: str | None = "abc123",
    fmt_map: str | None = None,
    extra: Mapping[str, str] | None = None,
) -> bytes:
    """Build a get_video_info response body (form-encoded)."""
    parts = ["status=ok"]
    if token is not None:
        parts.append(f"token={quote(token, safe='')}")
    if fmt_map is not None:
        parts.append(f"url_encoded_fmt_stream_map={quote(fmt_map, safe='')}")
    for key, value in (extra or {}).items():
        parts.append(f"{key}={quote(value, safe='')}")
    return "&".join(parts).encode()


def _make_watch_page(
    *,
    fmt_map: str | None = None,
    player_url: str | None = PLAYER_URL,
    age_gate: bool = False,
    dashmpd: str | None = None,
) -> bytes:
    """Build a minimal watch page with an embedded player config."""
    parts = ["<html><head><title>Video</title></head><body>"]
    if age_gate:
        parts.append('<div id="player-age-gate-content">Sign in to confirm</div>')
    config: list[str] = []
    if player_url is not None:
        config.append(
            '"assets": {"css": "/s/player/www.css", ' f'"js": "{player_url}"}}'
        )
    args: list[str] = []
    if fmt_map is not None:
        escaped = fmt_map.replace("&", JSON_AMPERSAND)
        args.append(f'"url_encoded_fmt_stream_map": "{escaped}"')
    if dashmpd is not None:
        args.append(f'"dashmpd": "{dashmpd}"')
    if args:
        config.append('"args": {' + ", ".join(args) + "}")
    if config:
        script = "var ytplayer = {config: {" + ", ".join(config) + "}};"
        parts.append(f"<script>{script}</script>")
    parts.append("</body></html>")
    return "\n".join(parts).encode()


def _descriptor(code: int, url: str, **signature: str) -> str:
    """One format descriptor: ``itag=<code>&url=<quoted>[&sig=..|&s=..]``."""
    text = f"itag={code}&url={quote(url, safe='')}"
    for key, value in signature.items():
        text += f"&{key}={quote(value, safe='')}"
    return text


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def http_client() -> AsyncMock:
    """HTTP collaborator mock; tests set ``get.side_effect``."""
    client = AsyncMock(spec=HttpClientPort)
    client.get = AsyncMock()
    return client


@pytest.fixture()
def evaluator() -> MagicMock:
    """Script evaluator mock returning ``None`` unless configured."""
    mock = MagicMock(spec=ScriptEvaluatorPort)
    mock.evaluate.return_value = None
    return mock


@pytest.fixture()
def listener() -> MagicMock:
    return MagicMock()


# ---------------------------------------------------------------------------
# Builder fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_video_info():
    return _make_video_info


@pytest.fixture()
def make_watch_page():
    return _make_watch_page


@pytest.fixture()
def descriptor():
    return _descriptor


@pytest.fixture()
def player_script() -> str:
    return PLAYER_SCRIPT


@pytest.fixture()
def player_url() -> str:
    return PLAYER_URL
