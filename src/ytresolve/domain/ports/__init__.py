from .http_client import HttpClientPort
from .pattern_library import PatternLibraryPort
from .resolution_listener import ResolutionListener
from .script_evaluator import ScriptEvaluatorPort

__all__ = [
    "HttpClientPort",
    "PatternLibraryPort",
    "ResolutionListener",
    "ScriptEvaluatorPort",
]
