"""YouTube stream resolver: turns a video id into a playable stream URL.

Flow (one resolution at a time per instance):

1. GET ``get_video_info`` with the current ``el`` strategy. A response
   without token or format map advances to the next strategy; after the
   four ordinary strategies comes the special age-gate request.
2. Parse the format map. Plain ``sig=`` signatures resolve immediately;
   an ``s=`` token needs the watch page.
3. Scrape the watch page. An age-gate marker restarts at the age-gate
   request; a missing format map advances the strategy cursor.
4. Fetch the player script, capture the signature function and its
   helpers, decrypt ``s=`` tokens and select a format.

Format selection takes the preferred definition or the closest lower one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from urllib.parse import unquote

import structlog

from ytresolve.domain.entities.definitions import (
    DEFAULT_DEFINITION_NAME,
    DEFAULT_DEFINITIONS,
    DefinitionTable,
    VideoDefinition,
)
from ytresolve.domain.entities.resolution import (
    AGE_GATE_STRATEGY_INDEX,
    REQUEST_STRATEGIES,
    ResolutionContext,
    ResolutionFailure,
    ResolutionOutcome,
    ResolutionState,
    ResolvedStreamUrl,
    SignatureMode,
)
from ytresolve.domain.exceptions import (
    ExhaustedStrategiesError,
    ResolutionBusyError,
    ResolutionError,
    TransportError,
    UnresolvableFormatError,
)
from ytresolve.domain.ports.http_client import HttpClientPort
from ytresolve.domain.ports.pattern_library import PatternLibraryPort
from ytresolve.domain.ports.resolution_listener import ResolutionListener
from ytresolve.domain.ports.script_evaluator import ScriptEvaluatorPort
from ytresolve.infrastructure.scripting import JsInterpScriptEvaluator

from .decryptor import SignatureDecryptor
from .format_map import FormatMapParser, FormatMapResult
from .js_capture import JsFragmentCapturer
from .patterns import RegexPatternLibrary

log = structlog.get_logger(__name__)

VIDEO_INFO_URL = "https://www.youtube.com/get_video_info"
WATCH_URL = "https://www.youtube.com/watch"

# Age-gated info requests pretend to come from an embedded player.
_AGE_GATE_STS = "1588"
_DASH_DEFINITION = "1080p"


def _decode(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def _decode_token(token: str) -> str:
    # The token can be percent-encoded more than once.
    while "%" in token:
        decoded = unquote(token)
        if decoded == token:
            break
        token = decoded
    return token


def build_info_params(video_id: str, strategy_index: int) -> dict[str, str]:
    """Query parameters for the video-info request at *strategy_index*.

    Raises ``ExhaustedStrategiesError`` past the age-gate position.
    """
    if strategy_index == AGE_GATE_STRATEGY_INDEX:
        return {
            "video_id": video_id,
            "el": "embedded",
            "gl": "US",
            "hl": "en",
            "eurl": f"https://youtube.googleapis.com/v/{video_id}",
            "asv": "3",
            "sts": _AGE_GATE_STS,
        }
    if strategy_index > AGE_GATE_STRATEGY_INDEX:
        raise ExhaustedStrategiesError(f"Cannot get video info for {video_id}")

    strategy = REQUEST_STRATEGIES[strategy_index]
    params = {"video_id": video_id}
    if strategy.el is not None:
        params["el"] = strategy.el
    params.update({"ps": "default", "eurl": "", "gl": "US", "hl": "en"})
    return params


class YouTubeStreamResolver:
    """Resolves a video id to a stream URL and definition code.

    Only one resolution may be in flight per instance: a second ``start``
    or ``resolve`` while busy raises ``ResolutionBusyError`` at once and
    leaves the running resolution untouched. Each resolution ends in
    exactly one listener event and one returned ``ResolutionOutcome``.
    """

    def __init__(
        self,
        http_client: HttpClientPort,
        *,
        patterns: PatternLibraryPort | None = None,
        evaluator: ScriptEvaluatorPort | None = None,
        definitions: DefinitionTable = DEFAULT_DEFINITIONS,
        preferred_definition: str = DEFAULT_DEFINITION_NAME,
        dash_enabled: bool = False,
        listeners: Iterable[ResolutionListener] = (),
    ) -> None:
        self._http = http_client
        self._patterns = patterns or RegexPatternLibrary()
        self._evaluator = evaluator or JsInterpScriptEvaluator()
        self._definitions = definitions
        self.preferred_definition = preferred_definition
        self._dash_enabled = dash_enabled
        self._listeners: list[ResolutionListener] = list(listeners)
        self._parser = FormatMapParser()
        self._busy = False
        self._context: ResolutionContext | None = None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def context(self) -> ResolutionContext | None:
        """Context of the current (or most recent) resolution."""
        return self._context

    def add_listener(self, listener: ResolutionListener) -> None:
        self._listeners.append(listener)

    def start(self, video_id: str) -> asyncio.Task[ResolutionOutcome]:
        """Schedule a resolution on the running loop and return its task."""
        ctx = self._claim(video_id)
        loop = asyncio.get_running_loop()
        return loop.create_task(self._resolve_claimed(ctx))

    async def resolve(self, video_id: str) -> ResolutionOutcome:
        ctx = self._claim(video_id)
        return await self._resolve_claimed(ctx)

    # -- lifecycle -------------------------------------------------------

    def _claim(self, video_id: str) -> ResolutionContext:
        if self._busy:
            log.debug("resolution_already_in_progress", video_id=video_id)
            raise ResolutionBusyError(
                f"Already resolving a stream URL ({self._context.video_id})"
                if self._context
                else "Already resolving a stream URL"
            )
        self._busy = True
        self._context = ResolutionContext(video_id=video_id)
        return self._context

    async def _resolve_claimed(self, ctx: ResolutionContext) -> ResolutionOutcome:
        structlog.contextvars.bind_contextvars(video_id=ctx.video_id)
        try:
            outcome = await self._run(ctx)
            self._transition(ctx, ResolutionState.DONE)
        except ResolutionError as exc:
            self._transition(ctx, ResolutionState.ERROR)
            outcome = ResolutionFailure(
                video_id=ctx.video_id,
                message=self._failure_message(ctx, exc),
                error=exc,
            )
        finally:
            ctx.discard_scripts()
            self._busy = False
            structlog.contextvars.unbind_contextvars("video_id")

        self._emit(outcome)
        return outcome

    @staticmethod
    def _failure_message(ctx: ResolutionContext, exc: ResolutionError) -> str:
        message = str(exc)
        if isinstance(exc, TransportError):
            return f"{message} (video {ctx.video_id})"
        return message

    def _emit(self, outcome: ResolutionOutcome) -> None:
        if isinstance(outcome, ResolvedStreamUrl):
            definition = self._definitions.for_code(outcome.definition_code)
            log.info(
                "stream_url_resolved",
                video_id=outcome.video_id,
                definition_code=outcome.definition_code,
                definition=definition.label if definition else None,
            )
            for listener in self._listeners:
                listener.on_resolved(outcome.stream_url, outcome.definition_code)
        else:
            log.warning(
                "stream_url_failed", video_id=outcome.video_id, message=outcome.message
            )
            for listener in self._listeners:
                listener.on_failed(outcome.message)

    # -- state machine ---------------------------------------------------

    @staticmethod
    def _transition(ctx: ResolutionContext, state: ResolutionState) -> None:
        ctx.transition(state)
        log.debug("state_transition", state=state.value)

    async def _run(self, ctx: ResolutionContext) -> ResolvedStreamUrl:
        while True:
            self._transition(ctx, ResolutionState.REQUESTING_INFO)
            params = build_info_params(ctx.video_id, ctx.strategy_index)
            log.debug(
                "video_info_requesting",
                strategy_index=ctx.strategy_index,
                age_gate=ctx.age_gate,
            )
            video_info = _decode(await self._http.get(VIDEO_INFO_URL, params))

            self._transition(ctx, ResolutionState.PARSING_INFO)
            fmt_map = self._extract_info(ctx, video_info)
            if fmt_map is None:
                ctx.strategy_index += 1
                continue

            mode = SignatureMode.AGE_GATE if ctx.age_gate else SignatureMode.DEFERRED
            definition = self._definitions.for_name(self.preferred_definition)
            result = self._parse_formats(ctx, fmt_map, definition, mode)
            if not result.needs_web_page:
                return self._select_format(ctx, result, definition)

            resolved = await self._resolve_from_web_page(ctx)
            if resolved is not None:
                return resolved

    def _extract_info(self, ctx: ResolutionContext, video_info: str) -> str | None:
        """Return the decoded format map, or ``None`` to try the next strategy."""
        token = self._patterns.video_token(video_info)
        if token is None:
            log.debug("video_token_missing", strategy_index=ctx.strategy_index)
            return None

        fmt_map = self._patterns.info_format_map(video_info)
        if fmt_map is None:
            log.debug("video_format_map_missing", strategy_index=ctx.strategy_index)
            return None

        ctx.video_token = _decode_token(token)
        log.debug("video_info_parsed", strategy_index=ctx.strategy_index)
        return unquote(fmt_map)

    async def _resolve_from_web_page(
        self, ctx: ResolutionContext
    ) -> ResolvedStreamUrl | None:
        """Scrape the watch page and its player script.

        Returns ``None`` when the resolution must restart at the info
        request; the strategy cursor has already been moved.
        """
        self._transition(ctx, ResolutionState.SCRAPING_WEBPAGE)
        params = {"v": ctx.video_id, "gl": "US", "hl": "en", "has_verified": "1"}
        html = _decode(await self._http.get(WATCH_URL, params))

        if self._patterns.has_age_gate(html):
            log.info("age_gate_detected")
            ctx.age_gate = True
            ctx.strategy_index = AGE_GATE_STRATEGY_INDEX
            return None

        fmt_map = self._patterns.web_page_format_map(html)
        if fmt_map is None:
            log.warning(
                "web_page_format_map_missing", strategy_index=ctx.strategy_index
            )
            ctx.strategy_index += 1
            return None
        ctx.web_format_map = fmt_map

        if self._dash_enabled and self.preferred_definition == _DASH_DEFINITION:
            ctx.dash_manifest_url = self._patterns.dash_manifest_url(
                html
            ) or self._patterns.dash_manifest_url(fmt_map)
            if ctx.dash_manifest_url is None:
                log.warning("dash_manifest_missing")

        player_url = self._patterns.player_script_url(html)
        if player_url is None:
            log.warning("player_script_url_missing")
        else:
            await self._load_player_script(ctx, player_url)

        self._transition(ctx, ResolutionState.DECRYPTING)
        decryptor = self._decryptor(ctx)
        if not decryptor.can_decrypt:
            log.warning("signature_decryption_unavailable")
        if ctx.dash_manifest_url and decryptor.can_decrypt:
            resolved = self._resolve_dash_manifest(ctx, decryptor)
            if resolved is not None:
                return resolved

        definition = self._definitions.for_name(self.preferred_definition)
        result = self._parse_formats(
            ctx, fmt_map, definition, SignatureMode.PAGE, decryptor
        )
        return self._select_format(ctx, result, definition)

    async def _load_player_script(self, ctx: ResolutionContext, url: str) -> None:
        self._transition(ctx, ResolutionState.FETCHING_PLAYER_SCRIPT)
        log.debug("player_script_fetching", url=url)
        ctx.player_script = _decode(await self._http.get(url))

        name = self._patterns.signature_function_name(ctx.player_script)
        if name is None:
            log.warning("signature_function_name_missing", url=url)
            return

        capturer = JsFragmentCapturer(ctx.player_script)
        capturer.capture_function(name)
        ctx.signature_function = name
        ctx.functions = capturer.functions
        ctx.objects = capturer.objects
        log.debug(
            "signature_function_captured",
            function=name,
            functions=sorted(capturer.functions),
            objects=sorted(capturer.objects),
        )

    def _decryptor(self, ctx: ResolutionContext) -> SignatureDecryptor:
        return SignatureDecryptor(
            self._evaluator,
            function_name=ctx.signature_function,
            functions=ctx.functions,
            objects=ctx.objects,
            player_script=ctx.player_script,
            age_script=self._patterns.age_signature_script,
            age_function=self._patterns.age_signature_function,
        )

    def _resolve_dash_manifest(
        self, ctx: ResolutionContext, decryptor: SignatureDecryptor
    ) -> ResolvedStreamUrl | None:
        manifest_url = ctx.dash_manifest_url or ""
        token = self._patterns.dash_signature(manifest_url)
        if token is None:
            return None
        signature = decryptor.decrypt(token)
        if not signature:
            log.warning("dash_manifest_signature_failed")
            return None
        manifest_url = self._patterns.replace_dash_signature(manifest_url, signature)
        dash = self._definitions.for_name(_DASH_DEFINITION)
        return ResolvedStreamUrl(
            video_id=ctx.video_id, stream_url=manifest_url, definition_code=dash.code
        )

    def _parse_formats(
        self,
        ctx: ResolutionContext,
        fmt_map: str,
        definition: VideoDefinition,
        mode: SignatureMode,
        decryptor: SignatureDecryptor | None = None,
    ) -> FormatMapResult:
        if mode is SignatureMode.AGE_GATE:
            self._transition(ctx, ResolutionState.DECRYPTING)
            decryptor = self._decryptor(ctx)
        return self._parser.parse(
            fmt_map, definition.code, mode=mode, decryptor=decryptor
        )

    def _select_format(
        self,
        ctx: ResolutionContext,
        result: FormatMapResult,
        definition: VideoDefinition,
    ) -> ResolvedStreamUrl:
        self._transition(ctx, ResolutionState.SELECTING_FORMAT)
        if result.selected is not None:
            return ResolvedStreamUrl(
                video_id=ctx.video_id,
                stream_url=result.selected.stream_url,
                definition_code=definition.code,
            )

        picked = self._definitions.fallback(definition, result.candidates)
        if picked is None:
            log.warning(
                "no_usable_format",
                requested=definition.code,
                available=sorted(result.candidates),
                degraded=result.degraded,
            )
            raise UnresolvableFormatError(
                f"Cannot get video stream for {ctx.video_id}"
            )

        fallback, entry = picked
        log.info("format_fallback", requested=definition.code, selected=fallback.code)
        return ResolvedStreamUrl(
            video_id=ctx.video_id,
            stream_url=entry.stream_url,
            definition_code=fallback.code,
        )
