# src/agents/anthropic_backend.py — v1
"""Anthropic Claude backend implementing BaseAgentBackend.

Uses the official anthropic SDK. The model is asked for a JSON document
listing the files to write; the response is validated with pydantic.
"""

from __future__ import annotations

import logging
import time

from pydantic import BaseModel, ValidationError

from phasekit.agents.base_backend import AgentBackendError, BaseAgentBackend
from phasekit.agents.models import AgentFile, AgentRequest, AgentResult

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You generate source files for a software project, one phase at a time.
Respond with a single JSON object and nothing else:
{"files": [{"path": "<project-relative path>", "content": "<full file content>"}]}
Paths use forward slashes and never leave the project root."""


class _FilesPayload(BaseModel):
    files: list[AgentFile]


class AnthropicAgentBackend(BaseAgentBackend):
    """Agent backed by the Anthropic Messages API."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        max_tokens: int = 16000,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self.__client = None  # Lazy initialization

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install phasekit[anthropic]"
                ) from e
            # An empty key lets the SDK fall back to ANTHROPIC_API_KEY.
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or None)
        return self.__client

    async def invoke(self, request: AgentRequest) -> AgentResult:
        """Single Messages API call returning a JSON file list."""
        start = time.monotonic()
        user_content = request.instruction
        if request.context_files:
            context = "\n\n".join(
                f"<file path=\"{path}\">\n{content}\n</file>"
                for path, content in sorted(request.context_files.items())
            )
            user_content = f"{context}\n\n{request.instruction}"

        response = await self._client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            system=_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": user_content}],
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        payload = _parse_payload(text)

        logger.info(
            "Anthropic returned %d files for %s (in=%d, out=%d tokens)",
            len(payload.files),
            request.phase_id,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return AgentResult(
            agent=self.name,
            files=payload.files,
            duration_ms=int((time.monotonic() - start) * 1000),
        )


def _parse_payload(text: str) -> _FilesPayload:
    """Parse the JSON file list, tolerating a surrounding code fence."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        stripped = stripped.rsplit("```", 1)[0]
    try:
        return _FilesPayload.model_validate_json(stripped)
    except ValidationError as exc:
        raise AgentBackendError(f"could not parse JSON file list: {exc}") from exc
