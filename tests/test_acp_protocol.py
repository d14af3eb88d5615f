"""Tests for ACP protocol module.

Tests cover:
- Protocol constants
- Request/notification envelope construction
- Message validation (payload exclusivity, presence tracking)
- Newline framing (send/receive, EOF, malformed lines)
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from gemini_cli_bridge.acp.protocol import (
    ACP_PROTOCOL_VERSION,
    JSONRPC_VERSION,
    MAX_LINE_SIZE,
    UPDATE_AGENT_MESSAGE_CHUNK,
    Message,
    decode_message,
    encode_message,
    make_notification,
    make_request,
    receive_message,
    send_message,
)
from gemini_cli_bridge.exceptions import (
    ChannelClosedError,
    ChannelError,
    MalformedMessageError,
)

from .conftest import create_reader, create_writer


class TestProtocolConstants:
    """Test protocol constants are correctly defined."""

    def test_jsonrpc_version(self) -> None:
        assert JSONRPC_VERSION == "2.0"

    def test_acp_protocol_version(self) -> None:
        assert ACP_PROTOCOL_VERSION == 1

    def test_max_line_size(self) -> None:
        assert MAX_LINE_SIZE == 10_485_760

    def test_agent_message_chunk_kind(self) -> None:
        assert UPDATE_AGENT_MESSAGE_CHUNK == "agent_message_chunk"


class TestEnvelopeBuilders:
    """Test request and notification construction."""

    def test_make_request_with_params(self) -> None:
        request = make_request(3, "session/new", {"cwd": "/tmp", "mcpServers": []})

        assert request == {
            "jsonrpc": "2.0",
            "id": 3,
            "method": "session/new",
            "params": {"cwd": "/tmp", "mcpServers": []},
        }

    def test_make_request_without_params(self) -> None:
        request = make_request(1, "ping")
        assert "params" not in request

    def test_make_notification_has_no_id(self) -> None:
        notification = make_notification("initialized")

        assert notification == {"jsonrpc": "2.0", "method": "initialized"}

    def test_encode_message_is_single_line(self) -> None:
        encoded = encode_message(
            {"jsonrpc": "2.0", "method": "x", "params": {"t": "a\nb"}}
        )

        assert encoded.endswith(b"\n")
        assert encoded.count(b"\n") == 1
        assert json.loads(encoded) == {
            "jsonrpc": "2.0",
            "method": "x",
            "params": {"t": "a\nb"},
        }


class TestMessage:
    """Test Message validation."""

    def test_response_with_null_result_counts_as_result(self) -> None:
        message = Message.model_validate({"jsonrpc": "2.0", "id": 1, "result": None})

        assert message.has_result is True
        assert message.has_error is False

    def test_notification_properties(self) -> None:
        message = Message.model_validate(
            {"jsonrpc": "2.0", "method": "session/update", "params": {}}
        )

        assert message.is_notification is True
        assert message.has_result is False

    def test_error_payload_parsed(self) -> None:
        message = Message.model_validate(
            {"jsonrpc": "2.0", "id": 2, "error": {"code": -32601, "message": "nope"}}
        )

        assert message.has_error is True
        assert message.error is not None
        assert message.error.code == -32601
        assert message.error.message == "nope"

    def test_rejects_result_and_error_together(self) -> None:
        with pytest.raises(ValueError, match="mutually exclusive"):
            Message.model_validate(
                {
                    "jsonrpc": "2.0",
                    "id": 1,
                    "result": {},
                    "error": {"code": 1, "message": "x"},
                }
            )

    def test_unknown_fields_ignored(self) -> None:
        message = Message.model_validate(
            {"jsonrpc": "2.0", "id": 1, "result": {}, "x": 1}
        )
        assert message.has_result is True


class TestDecodeMessage:
    """Test parsing of single wire lines."""

    def test_decodes_valid_line(self) -> None:
        message = decode_message(b'{"jsonrpc":"2.0","id":7,"result":{"ok":true}}\n')

        assert message.id == 7
        assert message.result == {"ok": True}

    def test_invalid_json_raises_malformed(self) -> None:
        with pytest.raises(MalformedMessageError, match="Invalid JSON") as exc_info:
            decode_message(b"not json\n")
        assert exc_info.value.raw_line == "not json"

    def test_non_object_raises_malformed(self) -> None:
        with pytest.raises(MalformedMessageError, match="JSON object"):
            decode_message(b"[1, 2, 3]\n")

    def test_invalid_envelope_raises_malformed(self) -> None:
        with pytest.raises(MalformedMessageError, match="Invalid ACP envelope"):
            decode_message(b'{"jsonrpc":"2.0","id":1,"error":"boom"}\n')

    def test_malformed_is_channel_error(self) -> None:
        with pytest.raises(ChannelError):
            decode_message(b"\n")


class TestFraming:
    """Test newline framing over asyncio streams."""

    @pytest.mark.asyncio
    async def test_send_writes_line_and_drains(self) -> None:
        writer = create_writer()

        await send_message(writer, {"jsonrpc": "2.0", "method": "initialized"})

        writer.write.assert_called_once_with(
            b'{"jsonrpc":"2.0","method":"initialized"}\n'
        )
        writer.drain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_broken_pipe_raises_closed(self) -> None:
        writer = create_writer()
        writer.drain.side_effect = BrokenPipeError("gone")

        with pytest.raises(ChannelClosedError, match="closed"):
            await send_message(writer, {"jsonrpc": "2.0", "method": "x"})

    @pytest.mark.asyncio
    async def test_send_other_os_error_raises_channel_error(self) -> None:
        writer = MagicMock(spec=asyncio.StreamWriter)
        writer.write.side_effect = OSError("bad fd")

        with pytest.raises(ChannelError, match="Failed to write"):
            await send_message(writer, {"jsonrpc": "2.0", "method": "x"})

    @pytest.mark.asyncio
    async def test_receive_one_message_per_call(self) -> None:
        reader = create_reader(
            {"jsonrpc": "2.0", "id": 1, "result": {}},
            {"jsonrpc": "2.0", "method": "session/update", "params": {}},
        )

        first = await receive_message(reader)
        second = await receive_message(reader)

        assert first.id == 1
        assert second.method == "session/update"

    @pytest.mark.asyncio
    async def test_receive_at_eof_raises_closed(self) -> None:
        reader = create_reader()

        with pytest.raises(ChannelClosedError, match="ended"):
            await receive_message(reader)

    @pytest.mark.asyncio
    async def test_receive_unterminated_final_line_raises_closed(self) -> None:
        reader = create_reader(b'{"jsonrpc":"2.0","id":1,"result":{}}')

        with pytest.raises(ChannelClosedError):
            await receive_message(reader)

    @pytest.mark.asyncio
    async def test_receive_malformed_line(self) -> None:
        reader = create_reader(b"Loaded cached credentials.\n")

        with pytest.raises(MalformedMessageError):
            await receive_message(reader)

    @pytest.mark.asyncio
    async def test_receive_line_over_limit_raises_channel_error(self) -> None:
        reader = asyncio.StreamReader(limit=16)
        reader.feed_data(b'{"jsonrpc":"2.0","id":1,"result":{"long":"xxxxxxxx"}}\n')
        reader.feed_eof()

        with pytest.raises(ChannelError, match="reader limit"):
            await receive_message(reader)
