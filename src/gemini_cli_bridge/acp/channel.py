"""Message channel over a gemini process's stdin/stdout pipe pair."""

import asyncio
import logging
from collections.abc import Mapping

from gemini_cli_bridge.acp.protocol import Message, receive_message, send_message
from gemini_cli_bridge.exceptions import ChannelTimeoutError

logger = logging.getLogger(__name__)


class MessageChannel:
    """Send and receive one ACP message at a time.

    The channel has no protocol knowledge: it frames, parses and logs. There
    is no buffering or batching, one call moves exactly one message.

    Args:
        reader: The process's stdout stream.
        writer: The process's stdin stream.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self._reader = reader
        self._writer = writer

    async def send(self, message: Mapping[str, object]) -> None:
        """Write *message* as a single line.

        Raises:
            ChannelClosedError: If the agent closed its stdin.
            ChannelError: On any other write failure.
        """
        logger.debug("[ACP] Sending: %s", message)
        await send_message(self._writer, message)

    async def receive(self, timeout: float | None = None) -> Message:
        """Block until the next message arrives.

        Args:
            timeout: Seconds to wait before giving up. ``None`` waits forever.

        Raises:
            ChannelTimeoutError: If *timeout* elapsed first.
            ChannelClosedError: If the agent output stream ended.
            MalformedMessageError: If the line is not a well-formed message.
            ChannelError: On any other read failure.
        """
        if timeout is None:
            message = await receive_message(self._reader)
        else:
            try:
                message = await asyncio.wait_for(
                    receive_message(self._reader), timeout=timeout
                )
            except TimeoutError as exc:
                raise ChannelTimeoutError(
                    f"No ACP message received within {timeout} seconds"
                ) from exc

        logger.debug("[ACP] Received: %s", message.model_dump(exclude_unset=True))
        return message

    def close(self) -> None:
        """Close the write side. Safe to call more than once."""
        if not self._writer.is_closing():
            self._writer.close()
