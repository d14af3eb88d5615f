"""Server configuration from environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from gemini_cli_bridge.fallback import DEFAULT_MODEL

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 6363


def _parse_port(value: str | None) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        port = int(value)
    except ValueError:
        logger.warning("Ignoring invalid PORT=%r, using %d", value, DEFAULT_PORT)
        return DEFAULT_PORT
    if not 0 < port < 65536:
        logger.warning("Ignoring out-of-range PORT=%d, using %d", port, DEFAULT_PORT)
        return DEFAULT_PORT
    return port


def _parse_timeout(value: str | None) -> float | None:
    if not value:
        return None
    try:
        timeout = float(value)
    except ValueError:
        logger.warning("Ignoring invalid GEMINI_CLI_BRIDGE_TIMEOUT=%r", value)
        return None
    if timeout <= 0:
        logger.warning("Ignoring non-positive GEMINI_CLI_BRIDGE_TIMEOUT=%r", value)
        return None
    return timeout


@dataclass(frozen=True)
class BridgeConfig:
    """Settings for the HTTP server and the bridge it owns.

    Attributes:
        host: Interface to bind.
        port: TCP port to listen on.
        default_model: Model used when a caller does not name one.
        cli_path: Explicit gemini executable, looked up on ``PATH`` if ``None``.
        timeout: Per-message timeout in seconds for agent I/O. ``None`` waits
            indefinitely.
        working_directory: Working directory for gemini processes.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    default_model: str = DEFAULT_MODEL
    cli_path: str | None = None
    timeout: float | None = None
    working_directory: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeConfig:
        """Build a config from ``PORT`` and ``GEMINI_CLI_*`` variables."""
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("GEMINI_CLI_BRIDGE_HOST") or DEFAULT_HOST,
            port=_parse_port(env.get("PORT")),
            default_model=env.get("GEMINI_CLI_BRIDGE_MODEL") or DEFAULT_MODEL,
            cli_path=env.get("GEMINI_CLI_PATH") or None,
            timeout=_parse_timeout(env.get("GEMINI_CLI_BRIDGE_TIMEOUT")),
            working_directory=env.get("GEMINI_CLI_BRIDGE_CWD") or None,
        )
