"""Signature decryption by evaluating captured player-script fragments."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from ytresolve.domain.ports.script_evaluator import ScriptEvaluatorPort

log = structlog.get_logger(__name__)


def _js_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class SignatureDecryptor:
    """Turns signed ``s=`` tokens into playback signatures.

    The ordinary path evaluates the captured objects and functions, then
    ``<function>('<token>')``. If that yields nothing it retries once with
    the entire player script in a fresh sandbox, which is slower but
    tolerates an incomplete capture. The age-gate path evaluates the
    age-signature script instead.

    Every failure ends in an empty string: the caller drops that format
    instead of failing the whole resolution.
    """

    def __init__(
        self,
        evaluator: ScriptEvaluatorPort,
        *,
        function_name: str | None = None,
        functions: Mapping[str, str] | None = None,
        objects: Mapping[str, str] | None = None,
        player_script: str = "",
        age_script: str | None = None,
        age_function: str = "decryptAgeSignature",
    ) -> None:
        self._evaluator = evaluator
        self._function_name = function_name
        self._functions = dict(functions or {})
        self._objects = dict(objects or {})
        self._player_script = player_script
        self._age_script = age_script
        self._age_function = age_function

    @property
    def can_decrypt(self) -> bool:
        return bool(self._function_name)

    def decrypt(self, token: str) -> str:
        if not self._function_name:
            log.debug("signature_function_unknown")
            return ""

        call = f"{self._function_name}({_js_string(token)});"
        fragments = [*self._objects.values(), *self._functions.values()]
        signature = self._evaluator.evaluate(fragments, call)
        if signature is None and self._player_script:
            log.info(
                "signature_full_script_retry",
                function=self._function_name,
                captured_functions=len(self._functions),
                captured_objects=len(self._objects),
            )
            signature = self._evaluator.evaluate([self._player_script], call)

        if not signature:
            log.warning("signature_decryption_failed", function=self._function_name)
            return ""
        return signature

    def decrypt_age(self, token: str) -> str:
        if not self._age_script:
            log.warning("age_signature_script_missing")
            return self.decrypt(token)

        call = f"{self._age_function}({_js_string(token)});"
        signature = self._evaluator.evaluate([self._age_script], call)
        if not signature:
            log.warning("age_signature_decryption_failed", function=self._age_function)
            return ""
        return signature
