"""Video quality definitions and fallback selection.

Pure value objects, no I/O.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TypeVar

from ytresolve.domain.exceptions import UnknownDefinitionError

T = TypeVar("T")


@dataclass(frozen=True)
class VideoDefinition:
    """A named quality level (e.g. ``"720p"``) with its numeric format code."""

    code: int  # itag / format code used by the remote service
    label: str
    rank: int  # higher = better quality


class DefinitionTable:
    """Ordered set of definitions, best quality first.

    Codes and labels must be unique. The order of the sequence is the
    fallback direction: the element after a definition is the next lower
    quality.
    """

    def __init__(self, definitions: Sequence[VideoDefinition]) -> None:
        ordered = sorted(definitions, key=lambda d: d.rank, reverse=True)
        codes = [d.code for d in ordered]
        labels = [d.label for d in ordered]
        if len(set(codes)) != len(codes):
            raise ValueError(f"Duplicate definition codes: {codes}")
        if len(set(labels)) != len(labels):
            raise ValueError(f"Duplicate definition labels: {labels}")
        self._definitions: tuple[VideoDefinition, ...] = tuple(ordered)

    def __iter__(self) -> Iterator[VideoDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def labels(self) -> list[str]:
        return [d.label for d in self._definitions]

    def for_name(self, label: str) -> VideoDefinition:
        for definition in self._definitions:
            if definition.label == label:
                return definition
        raise UnknownDefinitionError(
            f"Unknown definition {label!r} (known: {', '.join(self.labels)})"
        )

    def for_code(self, code: int) -> VideoDefinition | None:
        for definition in self._definitions:
            if definition.code == code:
                return definition
        return None

    def lower_than(self, definition: VideoDefinition) -> list[VideoDefinition]:
        """Definitions strictly below *definition*, closest first."""
        index = self._definitions.index(definition)
        return list(self._definitions[index + 1 :])

    def fallback(
        self, requested: VideoDefinition, available: Mapping[int, T]
    ) -> tuple[VideoDefinition, T] | None:
        """Pick the requested code, else the closest lower code present.

        Returns ``None`` when neither the requested definition nor any
        lower-quality definition is in *available*.
        """
        if requested.code in available:
            return requested, available[requested.code]
        for definition in self.lower_than(requested):
            if definition.code in available:
                return definition, available[definition.code]
        return None


DEFAULT_DEFINITION_NAME = "360p"

DEFAULT_DEFINITIONS = DefinitionTable(
    [
        VideoDefinition(code=37, label="1080p", rank=3),
        VideoDefinition(code=22, label="720p", rank=2),
        VideoDefinition(code=18, label="360p", rank=1),
    ]
)
