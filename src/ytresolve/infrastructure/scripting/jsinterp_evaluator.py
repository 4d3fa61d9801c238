"""Script evaluator backed by yt-dlp's restricted JavaScript interpreter.

``JSInterpreter`` understands the subset of JavaScript used by obfuscated
signature helpers (string/array juggling, object members, splice, reverse)
without embedding a full engine. A new interpreter is built for every
evaluation, so no state leaks from one call to the next.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

import structlog
from yt_dlp.jsinterp import JS_Undefined, JSInterpreter
from yt_dlp.utils import ExtractorError

log = structlog.get_logger(__name__)

_CALL_RE = re.compile(
    r"^\s*(?P<func>[a-zA-Z0-9$_]+)\s*\((?P<args>.*)\)\s*;?\s*$", re.DOTALL
)
_ARG_RE = re.compile(
    r"""\s*(?:'(?P<single>(?:[^'\\]|\\.)*)'|"(?P<double>(?:[^"\\]|\\.)*)"|(?P<number>-?\d+(?:\.\d+)?))\s*(?:,|$)"""
)
_ESCAPE_RE = re.compile(r"\\(.)")

# The interpreter reports unsupported syntax as ExtractorError but can leak
# plain Python errors on malformed input.
_EVALUATION_ERRORS = (
    ExtractorError,
    ValueError,
    TypeError,
    KeyError,
    IndexError,
    RecursionError,
)


def _unescape(value: str) -> str:
    return _ESCAPE_RE.sub(r"\1", value)


def parse_call_arguments(raw: str) -> list[Any] | None:
    """Parse a comma-separated list of JS string/number literals.

    Returns ``None`` when an argument is not a plain literal.
    """
    args: list[Any] = []
    pos = 0
    raw = raw.strip()
    while pos < len(raw):
        match = _ARG_RE.match(raw, pos)
        if match is None:
            return None
        if match.group("single") is not None:
            args.append(_unescape(match.group("single")))
        elif match.group("double") is not None:
            args.append(_unescape(match.group("double")))
        else:
            number = match.group("number")
            args.append(float(number) if "." in number else int(number))
        pos = match.end()
    return args


def build_program(fragments: Sequence[str]) -> str:
    """Concatenate fragments into one script, one statement per fragment."""
    # A leading ";" lets "name=function(...)" fragments parse as assignments.
    return "".join(f";{fragment}\n" for fragment in fragments)


class JsInterpScriptEvaluator:
    """``ScriptEvaluatorPort`` implementation using ``yt_dlp.jsinterp``."""

    def evaluate(
        self, fragments: Sequence[str], call_expression: str
    ) -> str | None:
        call = _CALL_RE.match(call_expression)
        if call is None:
            log.warning("script_call_unparseable", expression=call_expression[:80])
            return None
        args = parse_call_arguments(call.group("args"))
        if args is None:
            log.warning(
                "script_call_arguments_unsupported", expression=call_expression[:80]
            )
            return None

        func_name = call.group("func")
        interpreter = JSInterpreter(build_program(fragments))
        try:
            result = interpreter.call_function(func_name, *args)
        except _EVALUATION_ERRORS as exc:
            log.warning(
                "script_evaluation_error", function=func_name, error=str(exc)[:200]
            )
            return None

        if result is None or result is JS_Undefined:
            log.warning("script_result_undefined", function=func_name)
            return None
        return str(result)
