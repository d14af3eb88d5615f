"""Type definitions for bridge state and gemini CLI output."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field
from typing_extensions import TypeAliasType

# JSON-compatible recursive type (avoids Any)
JsonValue = TypeAliasType(
    "JsonValue",
    "int | float | str | bool | None | list[JsonValue] | dict[str, JsonValue]",
)


class BridgeMode(StrEnum):
    """How chat requests are served.

    - ``INTERACTIVE``: a persistent ``gemini --experimental-acp`` process with
      an established ACP session.
    - ``FALLBACK``: one-shot ``gemini -p`` invocations, no session.
    """

    INTERACTIVE = "interactive"
    FALLBACK = "fallback"


@dataclass
class BridgeState:
    """Mutable state owned by a single ``AgentBridge``.

    Only mutated while the owning bridge holds its lock.
    """

    model: str = ""
    mode: BridgeMode = BridgeMode.FALLBACK
    session_id: str = ""
    next_request_id: int = 0

    def reset(self, model: str) -> None:
        """Forget the previous session and request ids for a new process."""
        self.model = model
        self.mode = BridgeMode.INTERACTIVE
        self.session_id = ""
        self.next_request_id = 0

    def allocate_request_id(self) -> int:
        """Return a request id never used before within this process lifetime."""
        self.next_request_id += 1
        return self.next_request_id


# ── One-shot CLI output (``--output-format json``) ─────────────────────────


class GeminiPart(BaseModel):
    """Single content part of a candidate."""

    text: str | None = None


class GeminiCandidateContent(BaseModel):
    """Content block of a candidate."""

    parts: list[GeminiPart] = Field(default_factory=list)


class GeminiCandidate(BaseModel):
    """Generation candidate in raw API-shaped output."""

    content: GeminiCandidateContent = Field(default_factory=GeminiCandidateContent)


class GeminiCLIOutput(BaseModel):
    """Structured document printed by ``gemini -p ... --output-format json``.

    Different CLI versions put the answer in different places, so every field
    is optional and unknown fields (``stats``, ``error``...) are ignored.
    """

    response: str | None = None
    text: str | None = None
    content: str | None = None
    candidates: list[GeminiCandidate] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    def response_text(self) -> str | None:
        """Return the first populated answer field, or ``None``.

        Probes ``response``, ``text``, ``content`` and finally the first part
        of the first candidate.
        """
        for value in (self.response, self.text, self.content):
            if value:
                return value

        if self.candidates and self.candidates[0].content.parts:
            return self.candidates[0].content.parts[0].text or ""

        return None
