"""Prompt turn: send ``session/prompt`` and aggregate streamed chunks."""

from __future__ import annotations

import logging
from typing import NamedTuple

from gemini_cli_bridge.acp.channel import MessageChannel
from gemini_cli_bridge.acp.protocol import (
    METHOD_SESSION_PROMPT,
    METHOD_SESSION_UPDATE,
    UPDATE_AGENT_MESSAGE_CHUNK,
    Message,
    PromptParams,
    make_request,
)
from gemini_cli_bridge.exceptions import AgentError, ChannelClosedError

logger = logging.getLogger(__name__)


class PromptResult(NamedTuple):
    """Outcome of one prompt turn.

    Attributes:
        text: Concatenation of all agent message chunks, in receipt order.
        stop_reason: ``result.stopReason`` of the completion message, if any.
        completed: ``False`` when the channel ended before a completion
            message arrived and ``text`` is partial.
    """

    text: str
    stop_reason: str | None
    completed: bool


def extract_chunk_text(message: Message) -> str | None:
    """Return the text of an ``agent_message_chunk`` update, else ``None``."""
    if message.method != METHOD_SESSION_UPDATE or message.params is None:
        return None

    update = message.params.get("update")
    if not isinstance(update, dict):
        return None
    if update.get("sessionUpdate") != UPDATE_AGENT_MESSAGE_CHUNK:
        return None

    content = update.get("content")
    if not isinstance(content, dict):
        return None
    text = content.get("text")
    return text if isinstance(text, str) else None


def _agent_error(message: Message) -> AgentError:
    error = message.error
    if error is None:
        return AgentError("agent error: null", payload=None)
    return AgentError(
        f"agent error: {error.message} (code: {error.code})",
        code=error.code,
        data=error.data,
        payload=error.model_dump(),
    )


async def run_prompt(
    channel: MessageChannel,
    session_id: str,
    request_id: int,
    prompt: str,
    *,
    timeout: float | None = None,
) -> PromptResult:
    """Run one prompt turn on an established session.

    Notifications are consumed until a message carrying ``result`` (success)
    or ``error`` arrives. Only ``agent_message_chunk`` updates contribute
    text; every other message is ignored.

    Args:
        channel: Channel of the process owning the session.
        session_id: Session established by the handshake.
        request_id: Fresh request id for ``session/prompt``.
        prompt: Prompt text, sent as a single text content block.
        timeout: Optional per-message receive timeout in seconds.

    Returns:
        The aggregated text. If the channel ends first, the text received so
        far with ``completed=False``.

    Raises:
        AgentError: If the agent answered with an ``error`` payload. Text
            aggregated so far is discarded.
        ChannelError: On write failure, malformed input or timeout.
    """
    params: PromptParams = {
        "sessionId": session_id,
        "prompt": [{"type": "text", "text": prompt}],
    }
    await channel.send(make_request(request_id, METHOD_SESSION_PROMPT, params))

    chunks: list[str] = []
    while True:
        try:
            message = await channel.receive(timeout=timeout)
        except ChannelClosedError:
            logger.warning(
                "[ACP] Channel closed mid-prompt after %d chunks", len(chunks)
            )
            return PromptResult("".join(chunks), None, completed=False)

        chunk = extract_chunk_text(message)
        if chunk is not None:
            chunks.append(chunk)
            continue

        if message.has_result:
            stop_reason = None
            if isinstance(message.result, dict):
                value = message.result.get("stopReason")
                stop_reason = value if isinstance(value, str) else None
            if stop_reason is not None:
                logger.info("[ACP] Stop reason: %s", stop_reason)
            return PromptResult("".join(chunks), stop_reason, completed=True)

        if message.has_error:
            raise _agent_error(message)

        # Other update kinds, notifications and agent-to-client requests.
