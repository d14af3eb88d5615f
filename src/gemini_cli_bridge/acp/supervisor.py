"""Lifetime management for the interactive gemini process."""

from __future__ import annotations

import asyncio
import logging
import shutil

from gemini_cli_bridge.acp.channel import MessageChannel
from gemini_cli_bridge.acp.protocol import MAX_LINE_SIZE
from gemini_cli_bridge.exceptions import CLINotFoundError, SpawnError

logger = logging.getLogger(__name__)

CLI_EXECUTABLE = "gemini"
ACP_FLAG = "--experimental-acp"
TERMINATE_GRACE_SECONDS = 5.0


def find_cli(cli_path: str | None = None) -> str:
    """Resolve the gemini executable.

    Args:
        cli_path: Explicit path that takes precedence over a ``PATH`` lookup.

    Raises:
        CLINotFoundError: If no executable can be found.
    """
    if cli_path:
        return cli_path

    found = shutil.which(CLI_EXECUTABLE)
    if found is None:
        raise CLINotFoundError(
            "gemini CLI not found. "
            "Please install Gemini CLI: npm install -g @google/gemini-cli"
        )
    return found


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass


class ProcessSupervisor:
    """Own the single ``gemini --experimental-acp`` process of a bridge.

    Stdin and stdout are piped and handed to a :class:`MessageChannel`;
    stderr is inherited so the agent's diagnostics reach our own stderr.

    Args:
        cli_path: Explicit gemini executable, looked up on ``PATH`` if omitted.
        working_directory: Working directory for the spawned process.
        terminate_grace: Seconds to wait after SIGTERM before sending SIGKILL.
    """

    def __init__(
        self,
        *,
        cli_path: str | None = None,
        working_directory: str | None = None,
        terminate_grace: float = TERMINATE_GRACE_SECONDS,
    ) -> None:
        self._cli_path = cli_path
        self.working_directory = working_directory
        self.terminate_grace = terminate_grace
        self._process: asyncio.subprocess.Process | None = None
        self._channel: MessageChannel | None = None

    @property
    def is_alive(self) -> bool:
        """Whether a process handle exists and the process has not exited."""
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        """PID of the current process, if any."""
        return self._process.pid if self._process is not None else None

    @property
    def channel(self) -> MessageChannel | None:
        """Channel over the current process's pipes, if any."""
        return self._channel

    def _build_command(self, model: str) -> list[str]:
        """Build the interactive-mode command line."""
        if not model:
            raise ValueError("Model cannot be empty")
        cli_path = self._cli_path = find_cli(self._cli_path)
        return [cli_path, ACP_FLAG, "--model", model]

    async def spawn(self, model: str) -> MessageChannel:
        """Terminate any current process and start a new one.

        Args:
            model: Model identifier passed to ``--model``.

        Returns:
            A channel wired to the new process's stdin/stdout.

        Raises:
            SpawnError: If the executable is missing or cannot be started.
        """
        await self.terminate()

        try:
            cmd = self._build_command(model)
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                cwd=self.working_directory,
                limit=MAX_LINE_SIZE,
            )
        except (CLINotFoundError, ValueError) as exc:
            raise SpawnError(str(exc)) from exc
        except OSError as exc:
            raise SpawnError(f"Failed to start gemini in ACP mode: {exc}") from exc

        assert process.stdin is not None  # noqa: S101
        assert process.stdout is not None  # noqa: S101

        self._process = process
        self._channel = MessageChannel(process.stdout, process.stdin)
        logger.info(
            "Started gemini in ACP mode with model: %s (PID: %d)", model, process.pid
        )
        return self._channel

    async def terminate(self) -> None:
        """Stop the current process, if any.

        Sends SIGTERM, waits up to ``terminate_grace`` seconds, then SIGKILL.
        Best-effort: failures are logged and ignored. Idempotent.
        """
        process, self._process = self._process, None
        channel, self._channel = self._channel, None
        if process is None:
            return

        if channel is not None:
            channel.close()

        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self.terminate_grace)
            except TimeoutError:
                logger.warning(
                    "gemini (PID: %d) ignored SIGTERM, sending SIGKILL", process.pid
                )
                _kill(process)
                await process.wait()
            except asyncio.CancelledError:
                logger.warning(
                    "Cancelled while stopping gemini (PID: %d), sending SIGKILL",
                    process.pid,
                )
                _kill(process)
                raise

        logger.info(
            "Stopped gemini agent (PID: %d, exit code: %s)",
            process.pid,
            process.returncode,
        )
