"""ACP protocol: message types, constants, and newline-delimited framing.

This module defines the wire protocol between the bridge and a
``gemini --experimental-acp`` process. Messages are JSON-RPC 2.0 envelopes,
one compact JSON object per line, exchanged over the process's stdin/stdout.

Wire format::

    {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {...}}\\n
"""

import asyncio
import json
from collections.abc import Mapping
from typing import NotRequired, TypedDict

from pydantic import BaseModel, ValidationError, model_validator

from gemini_cli_bridge.exceptions import (
    ChannelClosedError,
    ChannelError,
    MalformedMessageError,
)
from gemini_cli_bridge.types import JsonValue

# ── Constants ──────────────────────────────────────────────────────────────

JSONRPC_VERSION: str = "2.0"
"""Protocol version tag carried by every message."""

ACP_PROTOCOL_VERSION: int = 1
"""ACP protocol version announced in ``initialize``."""

CLIENT_NAME: str = "gemini-cli-bridge"
"""Client name announced in ``initialize``."""

CLIENT_VERSION: str = "0.1.0"
"""Client version announced in ``initialize``."""

MAX_LINE_SIZE: int = 10_485_760
"""Maximum size of a single wire line in bytes (10 MB)."""

METHOD_INITIALIZE: str = "initialize"
METHOD_INITIALIZED: str = "initialized"
METHOD_SESSION_NEW: str = "session/new"
METHOD_SESSION_PROMPT: str = "session/prompt"
METHOD_SESSION_UPDATE: str = "session/update"

UPDATE_AGENT_MESSAGE_CHUNK: str = "agent_message_chunk"
"""``sessionUpdate`` kind whose ``content.text`` is part of the answer."""

_RAW_LINE_PREVIEW: int = 200


# ── Outgoing message TypedDicts ────────────────────────────────────────────


class ClientInfo(TypedDict):
    """Client identity sent during ``initialize``."""

    name: str
    version: str


class InitializeParams(TypedDict):
    """Parameters for an ``initialize`` request."""

    protocolVersion: int
    clientInfo: ClientInfo
    clientCapabilities: dict[str, JsonValue]


class NewSessionParams(TypedDict):
    """Parameters for a ``session/new`` request."""

    cwd: str
    mcpServers: list[JsonValue]


class TextContentBlock(TypedDict):
    """Single text content block of a prompt."""

    type: str
    text: str


class PromptParams(TypedDict):
    """Parameters for a ``session/prompt`` request."""

    sessionId: str
    prompt: list[TextContentBlock]


class RPCRequest(TypedDict):
    """Request envelope (expects a response with the same ``id``)."""

    jsonrpc: str
    id: int
    method: str
    params: NotRequired[Mapping[str, object]]


class RPCNotification(TypedDict):
    """Notification envelope (no ``id``, no response)."""

    jsonrpc: str
    method: str
    params: NotRequired[Mapping[str, object]]


def make_request(
    request_id: int,
    method: str,
    params: Mapping[str, object] | None = None,
) -> RPCRequest:
    """Build a JSON-RPC request envelope."""
    request: RPCRequest = {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
    }
    if params is not None:
        request["params"] = params
    return request


def make_notification(
    method: str,
    params: Mapping[str, object] | None = None,
) -> RPCNotification:
    """Build a JSON-RPC notification envelope."""
    notification: RPCNotification = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        notification["params"] = params
    return notification


# ── Incoming messages ──────────────────────────────────────────────────────


class RPCErrorPayload(BaseModel):
    """``error`` member of a JSON-RPC response."""

    code: int
    message: str
    data: JsonValue = None


class Message(BaseModel):
    """A received JSON-RPC envelope.

    ``params``, ``result`` and ``error`` are mutually exclusive. Presence is
    tracked separately from value, so ``{"result": null}`` still counts as a
    result.
    """

    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None = None
    method: str | None = None
    params: dict[str, JsonValue] | None = None
    result: JsonValue = None
    error: RPCErrorPayload | None = None

    model_config = {"extra": "ignore"}

    @model_validator(mode="after")
    def validate_exclusive_payload(self) -> "Message":
        """Reject envelopes carrying more than one of params/result/error."""
        present = [
            name
            for name in ("params", "result", "error")
            if name in self.model_fields_set
        ]
        if len(present) > 1:
            raise ValueError(
                f"params, result and error are mutually exclusive, got: {present}"
            )
        return self

    @property
    def has_result(self) -> bool:
        """Whether the envelope carries a ``result`` member."""
        return "result" in self.model_fields_set

    @property
    def has_error(self) -> bool:
        """Whether the envelope carries an ``error`` member."""
        return "error" in self.model_fields_set

    @property
    def is_notification(self) -> bool:
        """Whether the envelope is a notification (method, no id)."""
        return self.method is not None and self.id is None


def encode_message(message: Mapping[str, object]) -> bytes:
    """Serialize *message* to a single newline-terminated wire line."""
    return json.dumps(message, separators=(",", ":")).encode("utf-8") + b"\n"


def decode_message(line: bytes) -> Message:
    """Parse one wire line into a :class:`Message`.

    Raises:
        MalformedMessageError: If the line is not a JSON object or does not
            validate as a JSON-RPC envelope.
    """
    text = line.decode("utf-8", errors="replace").strip()
    preview = text[:_RAW_LINE_PREVIEW]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedMessageError(
            f"Invalid JSON in ACP message: {exc}", raw_line=preview
        ) from exc

    if not isinstance(data, dict):
        raise MalformedMessageError(
            f"ACP message must be a JSON object, got {type(data).__name__}",
            raw_line=preview,
        )

    try:
        return Message.model_validate(data)
    except ValidationError as exc:
        raise MalformedMessageError(
            f"Invalid ACP envelope: {exc}", raw_line=preview
        ) from exc


# ── Newline framing ────────────────────────────────────────────────────────


async def send_message(
    writer: asyncio.StreamWriter,
    message: Mapping[str, object],
) -> None:
    """Serialize *message* and write it followed by a newline.

    Raises:
        ChannelClosedError: If the agent closed its stdin.
        ChannelError: On any other write failure.
    """
    try:
        writer.write(encode_message(message))
        await writer.drain()
    except (BrokenPipeError, ConnectionResetError) as exc:
        raise ChannelClosedError(f"Agent input stream closed: {exc}") from exc
    except (OSError, RuntimeError) as exc:
        raise ChannelError(f"Failed to write ACP message: {exc}") from exc


async def receive_message(reader: asyncio.StreamReader) -> Message:
    """Read one newline-terminated line and deserialize it.

    Raises:
        ChannelClosedError: If the stream is at end-of-input, including a final
            line that lacks its terminating newline.
        MalformedMessageError: If the line is not a well-formed message.
        ChannelError: If the line exceeds the reader limit or reading fails.
    """
    try:
        line = await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as exc:
        raise ChannelClosedError(
            f"Agent output stream ended ({len(exc.partial)} unterminated bytes)"
        ) from exc
    except asyncio.LimitOverrunError as exc:
        raise ChannelError(
            f"ACP message exceeds the reader limit ({exc.consumed} bytes buffered)"
        ) from exc
    except OSError as exc:
        raise ChannelError(f"Failed to read ACP message: {exc}") from exc

    return decode_message(line)
