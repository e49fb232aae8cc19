# src/provenance/codec.py — v1
"""Provenance header codec.

A generated artifact starts with a comment block naming the phase that
produced it:

    // @phasekit:begin
    // series: web
    // version: 1.1.0
    // phase: P02
    // agent: claude
    // timestamp: 2026-10-17T10:15:00.123456+00:00
    // source: specs/001-auth/spec.md
    // @phasekit:end

Field set and order are fixed; only the comment syntax follows the file
type. decode_header(encode_header(f, p), p) == f for every valid field set.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import PurePosixPath
from typing import NamedTuple

from phasekit.core.models import ProvenanceFields

logger = logging.getLogger(__name__)

BEGIN_MARKER = "@phasekit:begin"
END_MARKER = "@phasekit:end"


class CommentStyle(NamedTuple):
    prefix: str
    suffix: str = ""


HASH = CommentStyle("# ")
SLASH = CommentStyle("// ")
DASH = CommentStyle("-- ")
SEMICOLON = CommentStyle("; ")
BLOCK = CommentStyle("/* ", " */")
MARKUP = CommentStyle("<!-- ", " -->")

_STYLE_BY_SUFFIX: dict[str, CommentStyle] = {
    **dict.fromkeys(
        [".py", ".sh", ".bash", ".zsh", ".rb", ".pl", ".r", ".yaml", ".yml",
         ".toml", ".cfg", ".ini", ".conf", ".ps1", ".mk", ".cmake", ".tf",
         ".dockerfile", ".gitignore", ".env", ".nix", ".ex", ".exs", ".jl"],
        HASH,
    ),
    **dict.fromkeys(
        [".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx", ".go", ".rs", ".java",
         ".kt", ".kts", ".scala", ".c", ".h", ".cc", ".cpp", ".hpp", ".cs",
         ".swift", ".dart", ".php", ".proto", ".gradle", ".zig", ".groovy",
         ".scss", ".less", ".sol", ".v", ".fs"],
        SLASH,
    ),
    **dict.fromkeys([".sql", ".lua", ".hs", ".elm", ".ada", ".vhd"], DASH),
    **dict.fromkeys([".clj", ".cljs", ".lisp", ".el", ".asm", ".s"], SEMICOLON),
    **dict.fromkeys([".css"], BLOCK),
    **dict.fromkeys(
        [".html", ".htm", ".xml", ".md", ".markdown", ".vue", ".svelte",
         ".svg", ".xaml", ".csproj"],
        MARKUP,
    ),
}

_STYLE_BY_NAME: dict[str, CommentStyle] = {
    "Dockerfile": HASH,
    "Makefile": HASH,
    "Gemfile": HASH,
    "Rakefile": HASH,
}

_ALL_STYLES = (HASH, SLASH, DASH, SEMICOLON, BLOCK, MARKUP)


def comment_style(path: str) -> CommentStyle:
    """Comment syntax for a file; unknown types fall back to '#'."""
    p = PurePosixPath(path.replace("\\", "/"))
    if p.name in _STYLE_BY_NAME:
        return _STYLE_BY_NAME[p.name]
    return _STYLE_BY_SUFFIX.get(p.suffix.lower(), HASH)


def _field_lines(fields: ProvenanceFields) -> list[str]:
    lines = [
        f"series: {fields.series}",
        f"version: {fields.version}",
        f"phase: {fields.phase_id}",
        f"agent: {fields.agent}",
        f"timestamp: {fields.timestamp.isoformat()}",
    ]
    if fields.source is not None:
        lines.append(f"source: {fields.source}")
    return lines


def encode_header(fields: ProvenanceFields, path: str) -> str:
    """Render the header block for a file, newline-terminated."""
    style = comment_style(path)
    lines = [BEGIN_MARKER, *_field_lines(fields), END_MARKER]
    return "".join(f"{style.prefix}{line}{style.suffix}\n" for line in lines)


def split_header(text: str, path: str | None = None) -> tuple[ProvenanceFields | None, str]:
    """Separate a leading header from the body.

    Returns:
        (fields, body). fields is None and body is the full text when no
        well-formed header is present.
    """
    styles: list[CommentStyle] = []
    if path is not None:
        styles.append(comment_style(path))
    styles.extend(s for s in _ALL_STYLES if s not in styles)

    for style in styles:
        parsed = _parse_with_style(text, style)
        if parsed is not None:
            return parsed
    return None, text


def decode_header(text: str, path: str | None = None) -> ProvenanceFields | None:
    """Recover the field set of a file's header, or None if absent."""
    fields, _ = split_header(text, path)
    return fields


def strip_header(text: str, path: str | None = None) -> str:
    """Body of a file without its provenance header."""
    _, body = split_header(text, path)
    return body


def inject_header(text: str, fields: ProvenanceFields, path: str) -> str:
    """Place a fresh header at the top, replacing any existing one."""
    return encode_header(fields, path) + strip_header(text, path)


def _parse_with_style(
    text: str, style: CommentStyle
) -> tuple[ProvenanceFields, str] | None:
    begin = f"{style.prefix}{BEGIN_MARKER}{style.suffix}"
    if not text.startswith(begin):
        return None

    values: dict[str, str] = {}
    offset = 0
    first = True
    while True:
        newline = text.find("\n", offset)
        if newline == -1:
            return None
        line = text[offset:newline]
        if line.endswith("\r"):
            line = line[:-1]
        offset = newline + 1

        if first:
            if line != begin:
                return None
            first = False
            continue

        if not line.startswith(style.prefix) or not line.endswith(style.suffix):
            return None
        inner = line[len(style.prefix) : len(line) - len(style.suffix)]
        if inner == END_MARKER:
            break
        key, sep, value = inner.partition(": ")
        if not sep:
            return None
        values[key] = value

    expected = ["series", "version", "phase", "agent", "timestamp"]
    keys = list(values)
    if keys[:5] != expected or keys[5:] not in ([], ["source"]):
        return None
    try:
        fields = ProvenanceFields(
            series=values["series"],
            version=values["version"],
            phase_id=values["phase"],
            agent=values["agent"],
            timestamp=datetime.fromisoformat(values["timestamp"]),
            source=values.get("source"),
        )
    except ValueError as exc:
        logger.debug("Malformed provenance header: %s", exc)
        return None
    return fields, text[offset:]
