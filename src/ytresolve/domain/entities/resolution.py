"""Domain entities for a single stream-URL resolution.

Value objects plus the mutable per-resolution context record owned by the
resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ytresolve.domain.exceptions import ResolutionError


class ResolutionState(str, Enum):
    IDLE = "idle"
    REQUESTING_INFO = "requesting_info"
    PARSING_INFO = "parsing_info"
    SCRAPING_WEBPAGE = "scraping_webpage"
    FETCHING_PLAYER_SCRIPT = "fetching_player_script"
    DECRYPTING = "decrypting"
    SELECTING_FORMAT = "selecting_format"
    DONE = "done"
    ERROR = "error"


class SignatureMode(str, Enum):
    """How short-lived ``s=`` tokens are handled while parsing a format map."""

    DEFERRED = "deferred"  # no decrypt context yet: ask for the watch page
    PAGE = "page"  # player script fetched: ordinary decrypt path
    AGE_GATE = "age_gate"  # age-gated video: age decrypt path


@dataclass(frozen=True)
class RequestStrategy:
    """One ``el`` parameter variant for the video-info request."""

    name: str
    el: str | None  # None = parameter omitted


REQUEST_STRATEGIES: tuple[RequestStrategy, ...] = (
    RequestStrategy("embedded", "embedded"),
    RequestStrategy("detailpage", "detailpage"),
    RequestStrategy("vevo", "vevo"),
    RequestStrategy("default", None),
)

# The cursor position right after the ordinary strategies selects the
# special age-gate request; anything beyond it means all were exhausted.
AGE_GATE_STRATEGY_INDEX = len(REQUEST_STRATEGIES)


@dataclass(frozen=True)
class FormatEntry:
    """One playable quality variant parsed from a format descriptor."""

    code: int
    url: str
    signature: str | None = None

    @property
    def stream_url(self) -> str:
        """Playback URL with the signature and rate-bypass flag appended."""
        url = f"{self.url}&signature={self.signature or ''}"
        if "ratebypass" not in url:
            url += "&ratebypass=yes"
        return url


@dataclass(frozen=True)
class ResolvedStreamUrl:
    video_id: str
    stream_url: str
    definition_code: int

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ResolutionFailure:
    video_id: str
    message: str
    error: ResolutionError | None = None

    @property
    def ok(self) -> bool:
        return False


ResolutionOutcome = ResolvedStreamUrl | ResolutionFailure


@dataclass
class ResolutionContext:
    """All mutable state of one in-flight resolution.

    Created fresh by every ``start``; nothing here is shared between
    resolutions.
    """

    video_id: str
    state: ResolutionState = ResolutionState.IDLE
    strategy_index: int = 0
    age_gate: bool = False
    video_token: str | None = None
    web_format_map: str | None = None
    dash_manifest_url: str | None = None
    player_script: str = ""
    signature_function: str | None = None
    functions: dict[str, str] = field(default_factory=dict)
    objects: dict[str, str] = field(default_factory=dict)
    history: list[ResolutionState] = field(default_factory=list)

    def transition(self, state: ResolutionState) -> None:
        self.state = state
        self.history.append(state)

    def discard_scripts(self) -> None:
        """Drop player script and capture tables once the resolution ends."""
        self.player_script = ""
        self.functions.clear()
        self.objects.clear()
