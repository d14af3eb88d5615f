"""ACP client package for talking to ``gemini --experimental-acp``.

This package implements the interactive side of the bridge: it spawns the
gemini CLI in Agent Client Protocol mode, performs the handshake that yields
a session, and aggregates streamed ``session/update`` chunks into one answer.

Architecture:
    AgentBridge --> ProcessSupervisor --(stdin/stdout, JSON lines)--> gemini
"""

from gemini_cli_bridge.acp.channel import MessageChannel
from gemini_cli_bridge.acp.handshake import Handshake, HandshakeState
from gemini_cli_bridge.acp.prompt import PromptResult, run_prompt
from gemini_cli_bridge.acp.protocol import Message, RPCErrorPayload
from gemini_cli_bridge.acp.supervisor import ProcessSupervisor

__all__ = [
    "Handshake",
    "HandshakeState",
    "Message",
    "MessageChannel",
    "ProcessSupervisor",
    "PromptResult",
    "RPCErrorPayload",
    "run_prompt",
]
