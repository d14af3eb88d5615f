"""gemini-cli-bridge: JSON-RPC bridge to the Gemini CLI over ACP."""

import logging
import os
import warnings

# Configure log level from environment variable
# Users can set GEMINI_CLI_BRIDGE_LOG_LEVEL to DEBUG, INFO, WARNING, ERROR, or CRITICAL
# Default is WARNING (suppresses debug/info logs)
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_log_level_env = os.getenv("GEMINI_CLI_BRIDGE_LOG_LEVEL")
_log_level_str = (_log_level_env or "WARNING").upper()

if _log_level_str not in _VALID_LOG_LEVELS:
    warnings.warn(
        f"Invalid GEMINI_CLI_BRIDGE_LOG_LEVEL='{_log_level_str}'. "
        f"Valid values: DEBUG, INFO, WARNING, ERROR, CRITICAL. Using WARNING.",
        stacklevel=1,
    )
    _log_level_str = "WARNING"

_logger = logging.getLogger("gemini_cli_bridge")
_logger.setLevel(getattr(logging, _log_level_str))

# Add handler only when env var is explicitly set and no handler exists yet
# (prevents duplicate handlers on module reload)
if _log_level_env is not None and not _logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    _logger.addHandler(_handler)

from gemini_cli_bridge.acp import (  # noqa: E402
    Handshake,
    HandshakeState,
    Message,
    MessageChannel,
    ProcessSupervisor,
    PromptResult,
    run_prompt,
)
from gemini_cli_bridge.bridge import AgentBridge  # noqa: E402
from gemini_cli_bridge.config import BridgeConfig  # noqa: E402
from gemini_cli_bridge.exceptions import (  # noqa: E402
    AgentError,
    ChannelClosedError,
    ChannelError,
    ChannelTimeoutError,
    CLIExecutionError,
    CLINotFoundError,
    CLIResponseParseError,
    ErrorType,
    GeminiBridgeError,
    HandshakeError,
    MalformedMessageError,
    SpawnError,
)
from gemini_cli_bridge.fallback import (  # noqa: E402
    DEFAULT_MODEL,
    GeminiCLI,
    extract_response_text,
)
from gemini_cli_bridge.server import BridgeServer  # noqa: E402
from gemini_cli_bridge.types import (  # noqa: E402
    BridgeMode,
    BridgeState,
    GeminiCLIOutput,
    JsonValue,
)

__all__ = [
    "AgentBridge",
    "BridgeConfig",
    "BridgeMode",
    "BridgeServer",
    "BridgeState",
    "DEFAULT_MODEL",
    "GeminiCLI",
    "GeminiCLIOutput",
    "JsonValue",
    "extract_response_text",
    # ACP client
    "Handshake",
    "HandshakeState",
    "Message",
    "MessageChannel",
    "ProcessSupervisor",
    "PromptResult",
    "run_prompt",
    # Exceptions
    "GeminiBridgeError",
    "SpawnError",
    "HandshakeError",
    "ChannelError",
    "ChannelClosedError",
    "ChannelTimeoutError",
    "MalformedMessageError",
    "AgentError",
    "CLINotFoundError",
    "CLIExecutionError",
    "CLIResponseParseError",
    "ErrorType",
]


def main() -> None:
    """Entry point for the ``gemini-cli-bridge`` command."""
    from gemini_cli_bridge.server import run

    run()
