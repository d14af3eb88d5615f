"""Custom exceptions for gemini-cli-bridge."""

from typing import Literal

from gemini_cli_bridge.types import JsonValue

# Supported error types for CLIExecutionError
ErrorType = Literal[
    "timeout",
    "permission",
    "cli_not_found",
    "unknown",
]


class GeminiBridgeError(Exception):
    """Base exception for gemini-cli-bridge."""


class SpawnError(GeminiBridgeError):
    """Raised when the interactive gemini process cannot be created."""


class HandshakeError(GeminiBridgeError):
    """Raised when the ACP handshake does not produce a usable session.

    Attributes:
        state: Name of the handshake state that was active when it failed.
    """

    def __init__(self, message: str, *, state: str = "") -> None:
        super().__init__(message)
        self.state = state


class ChannelError(GeminiBridgeError):
    """Raised when reading from or writing to the agent pipes fails."""


class MalformedMessageError(ChannelError):
    """Raised when a received line is not a well-formed JSON-RPC message.

    Attributes:
        raw_line: The offending line, truncated for diagnostics.
    """

    def __init__(self, message: str, *, raw_line: str = "") -> None:
        super().__init__(message)
        self.raw_line = raw_line


class ChannelClosedError(ChannelError):
    """Raised when the agent output stream is at end-of-input."""


class ChannelTimeoutError(ChannelError):
    """Raised when an opt-in receive timeout elapses."""


class AgentError(GeminiBridgeError):
    """Raised when the agent answers a prompt with an ``error`` payload.

    Attributes:
        code: JSON-RPC error code, if the payload carried one.
        data: Optional ``data`` member of the error payload.
        payload: The raw error payload as received.
    """

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        data: JsonValue = None,
        payload: JsonValue = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.data = data
        self.payload = payload


class CLINotFoundError(GeminiBridgeError):
    """Raised when the gemini CLI is not found."""


class CLIExecutionError(GeminiBridgeError):
    """Raised when a one-shot gemini invocation fails.

    Attributes:
        exit_code: CLI process exit code, if available.
        stderr: Standard error output captured from the CLI.
        error_type: Structured error type for programmatic handling.
            Supported values:
            - "timeout": Invocation exceeded the configured timeout
            - "permission": Permission denied when executing the CLI
            - "cli_not_found": CLI executable not found
            - "unknown": Non-zero exit or other failure
        recoverable: Whether the error may be recovered by retrying.
    """

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        stderr: str = "",
        error_type: ErrorType | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.error_type = error_type
        self.recoverable = recoverable


class CLIResponseParseError(GeminiBridgeError):
    """Raised when one-shot CLI output is not the expected JSON document."""

    def __init__(self, message: str, *, raw_output: str = "") -> None:
        super().__init__(message)
        self.raw_output = raw_output
