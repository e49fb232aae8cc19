# src/manifest/phase_document.py — v1
"""Phase documents: a YAML header followed by free-form instruction text.

    ---
    id: P02
    series: web
    version: 1.0.0
    type: generation
    inputs:
      - name: module
        type: string
    depends_on: [P01]
    manual_extension: "*.custom.ts"
    ---
    Generate the {{ module }} module ...

The instruction text is kept byte-for-byte; the header is the structured
part consumed by the manifest model.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from phasekit.core.errors import PhaseDocumentError
from phasekit.core.models import PhaseDefinition

logger = logging.getLogger(__name__)

DELIMITER = "---"
PHASE_SUFFIX = ".md"

_HEADER_KEYS = (
    "id",
    "type",
    "inputs",
    "depends_on",
    "produces",
    "manual_extension",
    "source",
)


def parse_phase_document(
    text: str,
    series: str | None = None,
    version: str | None = None,
    origin: str = "<string>",
) -> PhaseDefinition:
    """Parse a phase document into a PhaseDefinition.

    Args:
        text: Full document text.
        series: If given, the header's series (when present) must match.
        version: If given, the header's version (when present) must match.
        origin: Label used in error messages.

    Raises:
        PhaseDocumentError: If the header is missing, malformed or mismatched.
    """
    header, content = _split(text, origin)
    try:
        data = yaml.safe_load(header) or {}
    except yaml.YAMLError as exc:
        raise PhaseDocumentError(f"{origin}: invalid YAML header: {exc}") from exc
    if not isinstance(data, dict):
        raise PhaseDocumentError(f"{origin}: header must be a mapping")

    for key, expected in (("series", series), ("version", version)):
        found = data.get(key)
        if expected is not None and found is not None and str(found) != expected:
            raise PhaseDocumentError(
                f"{origin}: header {key} '{found}' does not match '{expected}'"
            )

    fields = {k: data[k] for k in _HEADER_KEYS if k in data}
    try:
        return PhaseDefinition(**fields, content=content)
    except ValidationError as exc:
        raise PhaseDocumentError(f"{origin}: {exc}") from exc


def render_phase_document(
    phase: PhaseDefinition, series: str | None = None, version: str | None = None
) -> str:
    """Render a PhaseDefinition back into document form."""
    header: dict[str, Any] = {"id": phase.id}
    if series is not None:
        header["series"] = series
    if version is not None:
        header["version"] = version
    header["type"] = phase.type.value
    if phase.inputs:
        header["inputs"] = [
            i.model_dump(mode="json", exclude_defaults=True) for i in phase.inputs
        ]
    if phase.depends_on:
        header["depends_on"] = list(phase.depends_on)
    if phase.produces:
        header["produces"] = list(phase.produces)
    if phase.manual_extension:
        header["manual_extension"] = phase.manual_extension
    if phase.source:
        header["source"] = phase.source

    dumped = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
    return f"{DELIMITER}\n{dumped}{DELIMITER}\n{phase.content}"


def load_phase_directory(
    directory: Path, series: str | None = None, version: str | None = None
) -> list[PhaseDefinition]:
    """Load every phase document in a directory, ordered by file name."""
    if not directory.is_dir():
        raise PhaseDocumentError(f"Not a directory: {directory}")
    phases = [
        parse_phase_document(
            read_document(path), series, version, origin=str(path)
        )
        for path in sorted(directory.glob(f"*{PHASE_SUFFIX}"))
    ]
    logger.info("Loaded %d phase documents from %s", len(phases), directory)
    return phases


def read_document(path: Path) -> str:
    """Read a phase document without newline translation."""
    return path.read_bytes().decode("utf-8")


def _split(text: str, origin: str) -> tuple[str, str]:
    """Split a document into (header, content)."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != DELIMITER:
        raise PhaseDocumentError(f"{origin}: missing '{DELIMITER}' header")
    for i in range(1, len(lines)):
        if lines[i].rstrip("\r\n") == DELIMITER:
            return "".join(lines[1:i]), "".join(lines[i + 1 :])
    raise PhaseDocumentError(f"{origin}: unterminated header")
