"""Basic usage example for gemini-cli-bridge without the HTTP server.

Prerequisites:
    - gemini CLI installed and available in PATH
    - Valid authentication configured for the gemini CLI
"""

import asyncio
import sys

from gemini_cli_bridge import AgentBridge
from gemini_cli_bridge.exceptions import (
    AgentError,
    CLIExecutionError,
    CLINotFoundError,
)


async def main() -> None:
    """Start an agent, ask two questions in one session, then stop it."""
    bridge = AgentBridge(timeout=120.0)
    await bridge.start("gemini-2.5-flash")
    print(f"Mode: {await bridge.get_mode()}")

    try:
        print("=== Answer 1 ===")
        print(await bridge.chat("What is 1+1? Answer with a single number."))
        print()
        print("=== Answer 2 ===")
        print(await bridge.chat("Multiply your previous answer by 21."))
    finally:
        await bridge.stop()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except CLINotFoundError as e:
        print(f"CLI not found: {e}", file=sys.stderr)
        sys.exit(1)
    except CLIExecutionError as e:
        print(f"CLI execution failed: {e}", file=sys.stderr)
        sys.exit(1)
    except AgentError as e:
        print(f"Agent reported an error: {e}", file=sys.stderr)
        sys.exit(1)
