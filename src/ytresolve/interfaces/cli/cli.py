from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ytresolve.domain.entities.definitions import DEFAULT_DEFINITIONS
from ytresolve.domain.entities.resolution import ResolutionOutcome, ResolvedStreamUrl
from ytresolve.infrastructure.config import AppConfig, load_config
from ytresolve.infrastructure.http import create_http_client
from ytresolve.infrastructure.logging import configure_logging, shutdown_logging
from ytresolve.interfaces.composition import build_resolver


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ytresolve",
        description="Resolve a YouTube video id to a playable stream URL.",
    )
    parser.add_argument("video_id", help="YouTube video id (e.g. dQw4w9WgXcQ).")

    parser.add_argument(
        "--definition",
        default=None,
        choices=DEFAULT_DEFINITIONS.labels,
        help="Preferred definition (overrides resolver.preferred_definition).",
    )
    parser.add_argument(
        "--dash",
        action="store_true",
        default=None,
        help="Prefer the DASH manifest when 1080p is requested.",
    )
    parser.add_argument(
        "--patterns",
        default=None,
        help="Path to a YAML file overriding the extraction patterns.",
    )

    # Config wiring flags (no business logic)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--dotenv",
        default=None,
        help="Path to .env file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )

    return parser.parse_args(argv)


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.definition:
        overrides["preferred_definition"] = args.definition
    if args.dash:
        overrides["dash_enabled"] = True
    if args.patterns:
        overrides["patterns_file"] = args.patterns
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    return overrides


async def resolve_once(config: AppConfig, video_id: str) -> ResolutionOutcome:
    """Resolve a single video id with a client built from *config*."""
    async with create_http_client(config) as http_client:
        resolver = build_resolver(config, http_client)
        return await resolver.resolve(video_id)


def start(argv: Iterable[str] | None = None) -> int:
    """Process entrypoint. Returns the exit code."""
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config = load_config(
        config_path=Path(args.config) if args.config else None,
        dotenv_path=Path(args.dotenv) if args.dotenv else None,
        cli_overrides=_cli_overrides(args),
    )
    configure_logging(config)

    try:
        outcome = asyncio.run(resolve_once(config, args.video_id))
    finally:
        shutdown_logging()

    if isinstance(outcome, ResolvedStreamUrl):
        print(f"{outcome.definition_code}\t{outcome.stream_url}")
        return 0

    print(outcome.message, file=sys.stderr)
    return 1


if __name__ == "__main__":
    raise SystemExit(start())
