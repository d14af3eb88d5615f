"""Shared test fixtures and helpers for gemini_cli_bridge tests."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from gemini_cli_bridge.acp.channel import MessageChannel


def create_reader(*messages: object, eof: bool = True) -> asyncio.StreamReader:
    """Create a StreamReader pre-fed with one JSON line per message.

    ``bytes`` items are fed verbatim, anything else is JSON-encoded.
    Must be called from a running event loop.
    """
    reader = asyncio.StreamReader()
    for message in messages:
        if isinstance(message, bytes):
            reader.feed_data(message)
        else:
            reader.feed_data(json.dumps(message).encode("utf-8") + b"\n")
    if eof:
        reader.feed_eof()
    return reader


def create_writer() -> MagicMock:
    """Create a mock StreamWriter recording written bytes."""
    writer = MagicMock(spec=asyncio.StreamWriter)
    writer.drain = AsyncMock()
    writer.is_closing.return_value = False
    return writer


def create_channel(
    *messages: object, eof: bool = True
) -> tuple[MessageChannel, MagicMock]:
    """Create a channel whose incoming side replays *messages*."""
    writer = create_writer()
    return MessageChannel(create_reader(*messages, eof=eof), writer), writer


def sent_messages(writer: MagicMock) -> list[dict[str, object]]:
    """Decode every line written to a mock writer."""
    return [
        json.loads(call.args[0].decode("utf-8"))
        for call in writer.write.call_args_list
    ]


def response(request_id: int, result: object) -> dict[str, object]:
    """Build a JSON-RPC success response."""
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(
    request_id: int, code: int = -32603, message: str = "Internal error"
) -> dict[str, object]:
    """Build a JSON-RPC error response."""
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def chunk(text: str, session_id: str = "sess-1") -> dict[str, object]:
    """Build an ``agent_message_chunk`` session/update notification."""
    return {
        "jsonrpc": "2.0",
        "method": "session/update",
        "params": {
            "sessionId": session_id,
            "update": {
                "sessionUpdate": "agent_message_chunk",
                "content": {"type": "text", "text": text},
            },
        },
    }


def update(
    kind: str, session_id: str = "sess-1", **fields: object
) -> dict[str, object]:
    """Build a session/update notification of an arbitrary kind."""
    return {
        "jsonrpc": "2.0",
        "method": "session/update",
        "params": {
            "sessionId": session_id,
            "update": {"sessionUpdate": kind, **fields},
        },
    }


def handshake_messages(session_id: str = "sess-1") -> list[dict[str, object]]:
    """Responses for a successful initialize + session/new exchange."""
    return [
        response(
            1, {"protocolVersion": 1, "agentCapabilities": {"loadSession": False}}
        ),
        response(2, {"sessionId": session_id}),
    ]
