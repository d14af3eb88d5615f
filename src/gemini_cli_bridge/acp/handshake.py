"""ACP handshake: initialize, initialized, session/new.

The handshake runs once per process start and either yields a session id or
ends in ``DEGRADED``, after which the bridge must not prompt the process.

State machine::

    UNSTARTED -> INITIALIZING -> INITIALIZED -> SESSION_PENDING -> READY
        \\              \\              \\               \\
         `--------------`--------------`---------------`--> DEGRADED
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from enum import Enum

from gemini_cli_bridge.acp.channel import MessageChannel
from gemini_cli_bridge.acp.protocol import (
    ACP_PROTOCOL_VERSION,
    CLIENT_NAME,
    CLIENT_VERSION,
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_SESSION_NEW,
    InitializeParams,
    Message,
    NewSessionParams,
    make_notification,
    make_request,
)
from gemini_cli_bridge.exceptions import ChannelError, HandshakeError
from gemini_cli_bridge.types import JsonValue

logger = logging.getLogger(__name__)


class HandshakeState(Enum):
    """Progress of a single handshake."""

    UNSTARTED = "unstarted"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    SESSION_PENDING = "session_pending"
    READY = "ready"
    DEGRADED = "degraded"


class Handshake:
    """Drive the three-step ACP handshake over a fresh channel.

    Args:
        channel: Channel wired to a freshly spawned process.
        next_request_id: Callable returning a new, never-used request id.
        cwd: Working directory announced in ``session/new``. Defaults to the
            current directory.
        timeout: Optional per-response timeout in seconds.
    """

    def __init__(
        self,
        channel: MessageChannel,
        next_request_id: Callable[[], int],
        *,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._channel = channel
        self._next_request_id = next_request_id
        self._cwd = cwd
        self._timeout = timeout
        self.state = HandshakeState.UNSTARTED
        self.session_id = ""
        self.agent_capabilities: dict[str, JsonValue] = {}

    def _transition(self, new_state: HandshakeState) -> None:
        logger.debug("[ACP] Handshake %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def _fail(self, message: str) -> HandshakeError:
        failed_in = self.state.value
        self._transition(HandshakeState.DEGRADED)
        return HandshakeError(message, state=failed_in)

    async def _request(
        self, method: str, params: InitializeParams | NewSessionParams
    ) -> Message:
        """Send a request and wait for the next message as its response."""
        request = make_request(self._next_request_id(), method, params)
        try:
            await self._channel.send(request)
            response = await self._channel.receive(timeout=self._timeout)
        except ChannelError as exc:
            raise self._fail(f"{method} failed: {exc}") from exc

        logger.debug(
            "[ACP] %s response: %s", method, response.model_dump(exclude_unset=True)
        )
        if response.has_error:
            raise self._fail(f"{method} error: {response.error}")
        return response

    async def run(self) -> str:
        """Perform the handshake.

        Returns:
            The session id assigned by the agent.

        Raises:
            HandshakeError: If any step fails. ``state`` is ``DEGRADED``
                afterwards.
        """
        if self.state is not HandshakeState.UNSTARTED:
            raise HandshakeError(
                f"Handshake already ran (state: {self.state.value})",
                state=self.state.value,
            )

        # Step 1: initialize
        self._transition(HandshakeState.INITIALIZING)
        init_params: InitializeParams = {
            "protocolVersion": ACP_PROTOCOL_VERSION,
            "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
            "clientCapabilities": {},
        }
        response = await self._request(METHOD_INITIALIZE, init_params)
        if isinstance(response.result, dict):
            capabilities = response.result.get("agentCapabilities")
            if isinstance(capabilities, dict):
                self.agent_capabilities = capabilities
        self._transition(HandshakeState.INITIALIZED)

        # Step 2: initialized (notification, no response)
        try:
            await self._channel.send(make_notification(METHOD_INITIALIZED))
        except ChannelError as exc:
            raise self._fail(f"{METHOD_INITIALIZED} failed: {exc}") from exc

        # Step 3: session/new
        self._transition(HandshakeState.SESSION_PENDING)
        session_params: NewSessionParams = {
            "cwd": self._cwd or os.getcwd(),
            "mcpServers": [],
        }
        response = await self._request(METHOD_SESSION_NEW, session_params)

        session_id = None
        if isinstance(response.result, dict):
            session_id = response.result.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise self._fail("failed to get session ID from session/new response")

        self.session_id = session_id
        self._transition(HandshakeState.READY)
        logger.info("[ACP] Session ID: %s", session_id)
        return session_id
