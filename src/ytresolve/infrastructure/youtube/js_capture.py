"""Extract the signature function and everything it references from player JS.

Pure text extraction, nothing is executed here. Starting from one
function name, the capturer pulls out that function's source, then every
function it invokes and every object whose members it touches, until the
reference graph is exhausted. A name is captured at most once, which is
what terminates cyclic references.
"""

from __future__ import annotations

import re
from collections import deque

import structlog

from .patterns import JS_NAME_CHARS

log = structlog.get_logger(__name__)

_N = JS_NAME_CHARS
_ARGS_AND_BODY = rf"\s*\([{_N},\s]*\)\s*\{{[^}}]+\}}"

# Calls such as ``;Xy(a,3)`` inside a captured body.
_INVOKED_FUNCTION_RE = re.compile(rf"[\s=;({{]([{_N}]+)\s*\([{_N},\s]+\)")
# Member access such as ``;Xy.ab`` inside a captured body.
_OBJECT_MEMBER_RE = re.compile(rf"[\s=;({{]([{_N}]+)\.[{_N}]+")
_PARAMS_RE = re.compile(rf"\(([{_N},\s]*)\)")

_JS_KEYWORDS = frozenset(
    {"if", "for", "while", "switch", "return", "function", "typeof", "catch", "new"}
)


def _function_patterns(name: str) -> list[tuple[re.Pattern[str], int]]:
    """Textual shapes of a function definition, tried in order.

    Each entry is ``(pattern, group)`` where *group* holds the source text.
    """
    escaped = re.escape(name)
    return [
        # function foo(a) { ... }
        (re.compile(rf"function\s+{escaped}{_ARGS_AND_BODY}"), 0),
        # var foo = function(a) { ... }
        (re.compile(rf"var\s+{escaped}\s*=\s*function{_ARGS_AND_BODY}"), 0),
        # ,foo=function(a) { ... }
        (
            re.compile(
                rf"[,\s;}}.)]({escaped}\s*=\s*function{_ARGS_AND_BODY})"
            ),
            1,
        ),
    ]


def _object_pattern(name: str) -> re.Pattern[str]:
    # Non-greedy: stops at the first "};" that closes the literal.
    return re.compile(
        rf"var\s+{re.escape(name)}\s*=\s*\{{.*?\}}\s*;", re.DOTALL
    )


class JsFragmentCapturer:
    """Collects function and object source text reachable from an entry point.

    Captured fragments accumulate in ``functions`` and ``objects`` (name ->
    source text). Names without a textual match are remembered in
    ``missing`` and never searched for again.
    """

    def __init__(self, source: str) -> None:
        self._source = source
        self.functions: dict[str, str] = {}
        self.objects: dict[str, str] = {}
        self.missing: set[str] = set()

    def capture_function(self, name: str) -> bool:
        """Capture *name* and its transitive references.

        Returns ``True`` if *name* itself is (now or already) captured.
        Uses an explicit worklist so deep call chains cannot exhaust the
        Python stack.
        """
        pending: deque[str] = deque([name])
        while pending:
            current = pending.popleft()
            if current in self.functions or current in self.missing:
                continue

            text = self._find_function(current)
            if text is None:
                log.warning("js_function_not_found", name=current)
                self.missing.add(current)
                continue

            self.functions[current] = text
            body = text[text.find("{") :]
            params = self._parameters(text)

            for match in _INVOKED_FUNCTION_RE.finditer(body):
                callee = match.group(1)
                if callee in _JS_KEYWORDS or callee in params:
                    continue
                if callee not in self.functions and callee not in self.missing:
                    pending.append(callee)

            for match in _OBJECT_MEMBER_RE.finditer(body):
                obj_name = match.group(1)
                if obj_name in params:
                    continue
                self.capture_object(obj_name)

        return name in self.functions

    def capture_object(self, name: str) -> bool:
        """Capture the ``var name = {...};`` literal verbatim."""
        if name in self.objects:
            return True
        if name in self.missing:
            return False
        match = _object_pattern(name).search(self._source)
        if match is None:
            log.warning("js_object_not_found", name=name)
            self.missing.add(name)
            return False
        self.objects[name] = match.group(0)
        return True

    def _find_function(self, name: str) -> str | None:
        for pattern, group in _function_patterns(name):
            match = pattern.search(self._source)
            if match:
                return match.group(group)
        return None

    @staticmethod
    def _parameters(text: str) -> set[str]:
        match = _PARAMS_RE.search(text)
        if match is None:
            return set()
        return {p.strip() for p in match.group(1).split(",") if p.strip()}
