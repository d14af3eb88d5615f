"""Bridge facade: choose between the ACP session and one-shot invocations."""

from __future__ import annotations

import asyncio
import logging

from gemini_cli_bridge.acp.handshake import Handshake
from gemini_cli_bridge.acp.prompt import run_prompt
from gemini_cli_bridge.acp.supervisor import ProcessSupervisor
from gemini_cli_bridge.exceptions import (
    ChannelError,
    ChannelTimeoutError,
    HandshakeError,
    SpawnError,
)
from gemini_cli_bridge.fallback import DEFAULT_MODEL, GeminiCLI
from gemini_cli_bridge.types import BridgeMode, BridgeState

logger = logging.getLogger(__name__)


class AgentBridge:
    """Serve chat prompts through gemini, interactively when possible.

    ``start`` spawns ``gemini --experimental-acp`` and runs the handshake. Any
    spawn or handshake failure is absorbed: the bridge logs it, switches to
    fallback mode and serves every ``chat`` through ``gemini -p`` until the
    next ``start``.

    All public methods serialize on one lock, so at most one operation runs
    at a time and prompts queue up behind each other.

    Args:
        cli_path: Explicit gemini executable, looked up on ``PATH`` if omitted.
        working_directory: Working directory for gemini processes and the
            ACP session ``cwd``.
        timeout: Opt-in per-message timeout in seconds for agent I/O and the
            one-shot invocation. ``None`` waits indefinitely.
        supervisor: Process supervisor to use instead of a new one.
        fallback: One-shot invoker to use instead of a new one.
    """

    def __init__(
        self,
        *,
        cli_path: str | None = None,
        working_directory: str | None = None,
        timeout: float | None = None,
        supervisor: ProcessSupervisor | None = None,
        fallback: GeminiCLI | None = None,
    ) -> None:
        self._state = BridgeState()
        self._lock = asyncio.Lock()
        self._working_directory = working_directory
        self._timeout = timeout
        self._supervisor = supervisor or ProcessSupervisor(
            cli_path=cli_path, working_directory=working_directory
        )
        self._fallback = fallback or GeminiCLI(
            cli_path=cli_path, working_directory=working_directory, timeout=timeout
        )

    # ── Mode transitions ──────────────────────────────────────────────────

    async def _degrade(self, reason: str) -> None:
        """Drop the interactive session and switch to fallback mode.

        Must be called with the lock held.
        """
        logger.warning("Switching to fallback mode: %s", reason)
        await self._supervisor.terminate()
        self._state.session_id = ""
        self._state.mode = BridgeMode.FALLBACK

    async def _check_process(self) -> None:
        """Degrade if the agent owning the session exited on its own.

        Must be called with the lock held.
        """
        if self._state.session_id and not self._supervisor.is_alive:
            await self._degrade("agent process exited")

    def _running(self) -> bool:
        return (
            self._state.mode is BridgeMode.INTERACTIVE
            and bool(self._state.session_id)
            and self._supervisor.is_alive
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self, model: str = DEFAULT_MODEL) -> None:
        """(Re)start the interactive agent with *model*.

        Never raises for spawn or handshake failures; those leave the bridge
        in fallback mode instead.
        """
        async with self._lock:
            await self._start(model)

    async def ensure_started(self, model: str = DEFAULT_MODEL) -> bool:
        """Start with *model* unless some ``start`` already happened.

        The check and the start run under one lock acquisition, so concurrent
        callers start the agent at most once.

        Returns:
            Whether this call started the agent.
        """
        async with self._lock:
            if self._state.model:
                return False
            logger.info("Agent not initialized, starting with model: %s", model)
            await self._start(model)
            return True

    async def _start(self, model: str) -> None:
        await self._supervisor.terminate()
        self._state.reset(model)

        try:
            channel = await self._supervisor.spawn(model)
        except SpawnError as exc:
            await self._degrade(
                f"ACP mode failed, will use non-interactive mode: {exc}"
            )
            return

        handshake = Handshake(
            channel,
            self._state.allocate_request_id,
            cwd=self._working_directory,
            timeout=self._timeout,
        )
        try:
            self._state.session_id = await handshake.run()
        except HandshakeError as exc:
            await self._degrade(
                f"ACP handshake failed in state {exc.state}: {exc}"
            )
            return
        except asyncio.CancelledError:
            await self._degrade("start cancelled during handshake")
            raise

        logger.info(
            "Agent ready: model=%s, session=%s", model, self._state.session_id
        )

    async def stop(self) -> None:
        """Terminate the interactive agent. Safe to call repeatedly."""
        async with self._lock:
            await self._supervisor.terminate()
            self._state.session_id = ""

    # ── Chat ──────────────────────────────────────────────────────────────

    async def chat(self, prompt: str) -> str:
        """Send *prompt* and return the complete answer.

        A turn that cannot finish cleanly on the ACP session (timeout,
        cancellation, malformed input, I/O failure, or the agent closing its
        output) is abandoned: the process is terminated and the bridge
        switches to fallback mode until the next ``start``. Besides ``start``
        and handshake failures, this is the only way the mode changes.

        Raises:
            AgentError: If the agent answered the prompt with an error.
            ChannelError: If agent I/O failed mid-prompt (other than the
                stream ending, which yields the partial answer).
            CLIExecutionError: If the one-shot invocation failed.
            CLINotFoundError: If the gemini CLI is not installed.
        """
        async with self._lock:
            await self._check_process()
            if self._running():
                return await self._chat_interactive(prompt)
            return await self._chat_fallback(prompt)

    async def _chat_interactive(self, prompt: str) -> str:
        channel = self._supervisor.channel
        assert channel is not None  # noqa: S101

        try:
            result = await run_prompt(
                channel,
                self._state.session_id,
                self._state.allocate_request_id(),
                prompt,
                timeout=self._timeout,
            )
        except ChannelTimeoutError:
            await self._degrade("prompt timed out, session abandoned")
            raise
        except ChannelError as exc:
            await self._degrade(f"channel failure during prompt: {exc}")
            raise
        except asyncio.CancelledError:
            await self._degrade("prompt cancelled, session abandoned")
            raise

        if not result.completed:
            await self._degrade("agent closed its output mid-prompt")
        return result.text

    async def _chat_fallback(self, prompt: str) -> str:
        self._fallback.model = self._state.model or DEFAULT_MODEL
        return await self._fallback.execute(prompt)

    # ── Accessors ─────────────────────────────────────────────────────────

    async def get_model(self) -> str:
        """Model selected by the most recent ``start`` ("" before any)."""
        async with self._lock:
            return self._state.model

    async def get_mode(self) -> BridgeMode:
        """Current mode."""
        async with self._lock:
            await self._check_process()
            return self._state.mode

    async def is_running(self) -> bool:
        """Whether chats are served by a live, established ACP session."""
        async with self._lock:
            await self._check_process()
            return self._running()
