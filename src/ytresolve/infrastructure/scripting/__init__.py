"""Sandboxed evaluation of extracted script fragments."""

from __future__ import annotations

from .jsinterp_evaluator import JsInterpScriptEvaluator

__all__ = ["JsInterpScriptEvaluator"]
