"""One-shot gemini CLI execution (fallback mode)."""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from gemini_cli_bridge.acp.supervisor import find_cli
from gemini_cli_bridge.exceptions import (
    CLIExecutionError,
    CLINotFoundError,
    CLIResponseParseError,
)
from gemini_cli_bridge.types import GeminiCLIOutput

logger = logging.getLogger(__name__)

# Constants
DEFAULT_MODEL = "gemini-3-flash-preview"
TIMEOUT_EXIT_CODE = -9


def parse_cli_output(output: str) -> GeminiCLIOutput:
    """Parse ``--output-format json`` output.

    Raises:
        CLIResponseParseError: If the output is not a JSON object of the
            expected shape.
    """
    try:
        return GeminiCLIOutput.model_validate_json(output)
    except ValidationError as e:
        raise CLIResponseParseError(
            f"Failed to parse CLI JSON output: {e.error_count()} errors",
            raw_output=output,
        ) from e


def extract_response_text(output: str) -> str:
    """Extract the answer from one-shot CLI output.

    Probes ``response``, ``text``, ``content`` and the first candidate part.
    Unparsable output, or output with none of those fields, is returned
    with surrounding whitespace removed.
    """
    try:
        parsed = parse_cli_output(output)
    except CLIResponseParseError:
        logger.debug("[Simple] JSON parse failed, returning raw output")
        return output.strip()

    text = parsed.response_text()
    if text is None:
        return output.strip()
    return text


class GeminiCLI:
    """Execute the gemini CLI as a one-shot subprocess."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        cli_path: str | None = None,
        working_directory: str | None = None,
        timeout: float | None = None,
    ) -> None:
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")

        self.model = model
        self.working_directory = working_directory
        self.timeout = timeout
        self._cli_path = cli_path

    def _build_command(self, prompt: str) -> list[str]:
        """Build the CLI command with arguments.

        Args:
            prompt: The prompt passed to ``-p``.

        Returns:
            List of command arguments.

        Raises:
            CLINotFoundError: If the gemini CLI cannot be found.
        """
        cli_path = self._cli_path = find_cli(self._cli_path)
        return [
            cli_path,
            "-p",
            prompt,
            "--output-format",
            "json",
            "--model",
            self.model,
        ]

    async def execute(self, prompt: str) -> str:
        """Run the CLI once and return the extracted answer.

        Args:
            prompt: The full prompt to send.

        Returns:
            The response text.

        Raises:
            CLINotFoundError: If the gemini CLI is not found.
            CLIExecutionError: If the CLI exits non-zero, times out or
                cannot be executed.
        """
        cmd = self._build_command(prompt)
        process: asyncio.subprocess.Process | None = None
        logger.info("[Simple] Running gemini with prompt length: %d", len(prompt))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.working_directory,
            )

            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )

        except asyncio.TimeoutError as e:
            if process is not None:
                process.kill()
                await process.wait()
            raise CLIExecutionError(
                f"CLI execution timed out after {self.timeout} seconds.",
                exit_code=TIMEOUT_EXIT_CODE,
                stderr="Process was killed due to timeout",
                error_type="timeout",
                recoverable=True,
            ) from e
        except asyncio.CancelledError:
            if process is not None:
                process.kill()
                await process.wait()
            raise
        except FileNotFoundError as e:
            raise CLINotFoundError(
                f"gemini CLI not found at expected location: {e}"
            ) from e
        except PermissionError as e:
            raise CLIExecutionError(
                f"Permission denied when executing gemini CLI: {e}",
                stderr=str(e),
                error_type="permission",
            ) from e
        except OSError as e:
            raise CLIExecutionError(
                f"OS error during CLI execution: {e}. "
                f"Working directory: {self.working_directory}",
                stderr=str(e),
                error_type="unknown",
            ) from e

        stdout_str = stdout.decode("utf-8", errors="replace")
        stderr_str = stderr.decode("utf-8", errors="replace")

        if process.returncode != 0:
            logger.warning(
                "[Simple] gemini exited with code %s, stderr: %s",
                process.returncode,
                stderr_str,
            )
            raise CLIExecutionError(
                f"gemini failed: exit code {process.returncode} - {stderr_str}",
                exit_code=process.returncode,
                stderr=stderr_str,
                error_type="unknown",
            )

        logger.debug("[Simple] Raw output length: %d", len(stdout_str))
        return extract_response_text(stdout_str)
