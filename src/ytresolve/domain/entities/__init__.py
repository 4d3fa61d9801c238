from .definitions import (
    DEFAULT_DEFINITION_NAME,
    DEFAULT_DEFINITIONS,
    DefinitionTable,
    VideoDefinition,
)
from .resolution import (
    AGE_GATE_STRATEGY_INDEX,
    REQUEST_STRATEGIES,
    FormatEntry,
    RequestStrategy,
    ResolutionContext,
    ResolutionFailure,
    ResolutionOutcome,
    ResolutionState,
    ResolvedStreamUrl,
    SignatureMode,
)

__all__ = [
    "AGE_GATE_STRATEGY_INDEX",
    "DEFAULT_DEFINITIONS",
    "DEFAULT_DEFINITION_NAME",
    "DefinitionTable",
    "FormatEntry",
    "REQUEST_STRATEGIES",
    "RequestStrategy",
    "ResolutionContext",
    "ResolutionFailure",
    "ResolutionOutcome",
    "ResolutionState",
    "ResolvedStreamUrl",
    "SignatureMode",
    "VideoDefinition",
]
