"""Port for evaluating small extracted script fragments."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class ScriptEvaluatorPort(Protocol):
    """Evaluates a call expression against a list of source fragments.

    Each call must run in a fresh sandbox: nothing defined by one
    evaluation may be visible to the next.
    """

    def evaluate(
        self, fragments: Sequence[str], call_expression: str
    ) -> str | None:
        """Return the string result, or ``None`` if it is undefined or errors."""
        ...
