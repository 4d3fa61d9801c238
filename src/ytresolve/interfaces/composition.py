"""Composition root: builds the resolver and its collaborators from config."""

from __future__ import annotations

import structlog

from ytresolve.domain.ports.http_client import HttpClientPort
from ytresolve.domain.ports.script_evaluator import ScriptEvaluatorPort
from ytresolve.infrastructure.config.schema import AppConfig
from ytresolve.infrastructure.scripting import JsInterpScriptEvaluator
from ytresolve.infrastructure.youtube import (
    YouTubeStreamResolver,
    load_pattern_library,
)

log = structlog.get_logger(__name__)


def build_resolver(
    config: AppConfig,
    http_client: HttpClientPort,
    *,
    evaluator: ScriptEvaluatorPort | None = None,
) -> YouTubeStreamResolver:
    patterns = load_pattern_library(config.patterns_file)
    resolver = YouTubeStreamResolver(
        http_client,
        patterns=patterns,
        evaluator=evaluator or JsInterpScriptEvaluator(),
        preferred_definition=config.preferred_definition,
        dash_enabled=config.dash_enabled,
    )
    log.debug(
        "resolver_initialized",
        patterns=patterns.version,
        preferred_definition=config.preferred_definition,
        dash_enabled=config.dash_enabled,
    )
    return resolver
