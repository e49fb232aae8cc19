# src/engine/inputs.py — v1
"""Input resolution and instruction rendering for a single phase.

Resolution order per declared input:
    1. explicit override (phase-qualified "P01.name" wins over "name")
    2. last value used for the same (series, version, phase)
    3. last value used under a fallback version (migration)
    4. declared default
    5. interactive prompt

Values are coerced to the declared type with a pydantic TypeAdapter so
cached JSON values and CLI strings end up identical.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from pydantic import Json, TypeAdapter, ValidationError

from phasekit.cache.base_cache_store import BaseStateStore
from phasekit.core.errors import InputResolutionError
from phasekit.core.models import PhaseDefinition, PhaseInput

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.-]*)\s*\}\}")

Prompter = Callable[[str, PhaseInput], "str | None"]

_ADAPTERS: dict[str, TypeAdapter[Any]] = {
    "string": TypeAdapter(str),
    "integer": TypeAdapter(int),
    "number": TypeAdapter(float),
    "boolean": TypeAdapter(bool),
    "path": TypeAdapter(str),
}
_JSON_TEXT = TypeAdapter(Json[Any])


def coerce_value(spec: PhaseInput, value: Any) -> Any:
    """Coerce a raw value (CLI string, cached JSON) to the declared type.

    Raises:
        ValueError: If the value does not fit the declared type.
    """
    try:
        if spec.type == "json":
            return _JSON_TEXT.validate_python(value) if isinstance(value, str) else value
        if spec.type == "path" and not isinstance(value, str):
            return str(value)
        return _ADAPTERS[spec.type].validate_python(value)
    except ValidationError as exc:
        raise ValueError(
            f"expected {spec.type}, got {value!r} ({exc.errors()[0]['msg']})"
        ) from exc


def overrides_for(phase_id: str, overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Pick the overrides that apply to one phase.

    Plain keys apply to every phase declaring that input; keys of the form
    "<phase_id>.<name>" apply to one phase and take precedence.
    """
    result: dict[str, Any] = {}
    prefix = f"{phase_id}."
    for key, value in overrides.items():
        if "." not in key:
            result.setdefault(key, value)
    for key, value in overrides.items():
        if key.startswith(prefix):
            result[key[len(prefix):]] = value
    return result


def placeholders(content: str) -> list[str]:
    """Distinct placeholder names in order of first appearance."""
    seen: dict[str, None] = {}
    for match in PLACEHOLDER_RE.finditer(content):
        seen.setdefault(match.group(1), None)
    return list(seen)


def render_instruction(content: str, inputs: Mapping[str, Any]) -> str:
    """Substitute {{ name }} placeholders; unknown names are left verbatim."""

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in inputs:
            return match.group(0)
        value = inputs[name]
        if isinstance(value, (dict, list)):
            return json.dumps(value, sort_keys=True)
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    return PLACEHOLDER_RE.sub(_sub, content)


def instruction_fingerprint(
    phase: PhaseDefinition, instruction: str, inputs: Mapping[str, Any]
) -> str:
    """Hash identifying one concrete invocation of a phase."""
    payload = json.dumps(
        {
            "definition": phase.content_hash(),
            "instruction": instruction,
            "inputs": dict(inputs),
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class InputResolver:
    """Resolve declared phase inputs against overrides, cache and prompts."""

    def __init__(self, state_store: BaseStateStore, prompter: Prompter | None = None) -> None:
        self._store = state_store
        self._prompter = prompter

    async def resolve(
        self,
        phase: PhaseDefinition,
        series: str,
        version: str,
        overrides: Mapping[str, Any] | None = None,
        fallback_versions: Sequence[str] = (),
        interactive: bool = False,
        strict: bool = True,
    ) -> dict[str, Any]:
        """Resolve every declared input of a phase.

        Args:
            strict: When False, unresolved required inputs are omitted
                instead of raising (used for dry runs).

        Raises:
            InputResolutionError: If a required input is unresolved or a
                value cannot be coerced.
        """
        overrides = overrides or {}
        cached = await self._store.last_inputs(series, version, phase.id)
        fallbacks = [
            await self._store.last_inputs(series, v, phase.id) for v in fallback_versions
        ]

        resolved: dict[str, Any] = {}
        for spec in phase.inputs:
            source, raw = self._lookup(spec, overrides, cached, fallbacks)
            if source is None and interactive and self._prompter is not None:
                answer = self._prompter(phase.id, spec)
                if answer not in (None, ""):
                    source, raw = "prompt", answer

            if source is None:
                if spec.required and strict:
                    raise InputResolutionError(phase.id, spec.name)
                if spec.required:
                    logger.warning("Input '%s' of %s unresolved", spec.name, phase.id)
                continue

            try:
                resolved[spec.name] = coerce_value(spec, raw)
            except ValueError as exc:
                raise InputResolutionError(phase.id, spec.name, str(exc)) from exc
            logger.debug("Input %s.%s resolved from %s", phase.id, spec.name, source)

        return resolved

    @staticmethod
    def _lookup(
        spec: PhaseInput,
        overrides: Mapping[str, Any],
        cached: Mapping[str, Any],
        fallbacks: Sequence[Mapping[str, Any]],
    ) -> tuple[str | None, Any]:
        if spec.name in overrides:
            return "override", overrides[spec.name]
        if spec.name in cached:
            return "cache", cached[spec.name]
        for values in fallbacks:
            if spec.name in values:
                return "fallback", values[spec.name]
        if spec.default is not None:
            return "default", spec.default
        return None, None
