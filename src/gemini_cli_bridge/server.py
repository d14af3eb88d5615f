"""HTTP JSON-RPC front end for the bridge.

Exposes two methods on ``POST /rpc`` plus a health probe::

    InitSession {"model"?: str}                 -> {"success", "model", "mode"}
    Chat        {"message": str, "context"?: str} -> {"response"}
    GET /health                                 -> {"status", "model", "mode"}
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable

from aiohttp import web
from pydantic import BaseModel, ValidationError

from gemini_cli_bridge.bridge import AgentBridge
from gemini_cli_bridge.config import BridgeConfig
from gemini_cli_bridge.exceptions import GeminiBridgeError
from gemini_cli_bridge.types import JsonValue

logger = logging.getLogger(__name__)

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
SERVER_ERROR = -32000

ALLOWED_ORIGIN_PREFIXES = ("chrome-extension://", "http://localhost")

PROMPT_WITH_CONTEXT = "Page content:\n\n{context}\n\n---\n\nUser question: {message}"


# ── Request / result models ──────────────────────────────────────────────


class RPCEnvelope(BaseModel):
    """Inbound JSON-RPC request."""

    jsonrpc: str = "2.0"
    id: int | str | None = None
    method: str
    params: JsonValue = None


class InitSessionParams(BaseModel):
    """Parameters of ``InitSession``."""

    model: str = ""


class InitSessionResult(BaseModel):
    """Result of ``InitSession``."""

    success: bool
    model: str
    mode: str


class ChatParams(BaseModel):
    """Parameters of ``Chat``."""

    message: str
    context: str = ""


class ChatResult(BaseModel):
    """Result of ``Chat``."""

    response: str


def build_prompt(message: str, context: str = "") -> str:
    """Combine the user question with optional page context."""
    if context:
        return PROMPT_WITH_CONTEXT.format(context=context, message=message)
    return message


def _rpc_response(
    request_id: int | str | None,
    *,
    result: BaseModel | None = None,
    code: int | None = None,
    message: str = "",
) -> web.Response:
    body: dict[str, object] = {"jsonrpc": "2.0", "id": request_id}
    if code is not None:
        body["error"] = {"code": code, "message": message}
    else:
        body["result"] = result.model_dump() if result is not None else None
    return web.json_response(body)


class _RPCError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


# ── Server ───────────────────────────────────────────────────────────────


class BridgeServer:
    """aiohttp application wrapping one :class:`AgentBridge`.

    Args:
        config: Server settings.
        bridge: Bridge to serve. Built from *config* if omitted.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        bridge: AgentBridge | None = None,
    ) -> None:
        self._config = config or BridgeConfig()
        self._bridge = bridge or AgentBridge(
            cli_path=self._config.cli_path,
            working_directory=self._config.working_directory,
            timeout=self._config.timeout,
        )
        self._methods: dict[
            str, Callable[[dict[str, JsonValue]], Awaitable[BaseModel]]
        ] = {
            "InitSession": self.init_session,
            "Chat": self.chat,
        }
        self._app = web.Application(
            middlewares=[self._cors_middleware, self._request_logging_middleware]
        )
        self._app.router.add_post("/rpc", self._handle_rpc)
        self._app.router.add_get("/health", self._handle_health)
        self._app.on_cleanup.append(self._on_cleanup)

    @property
    def app(self) -> web.Application:
        """The aiohttp application."""
        return self._app

    @property
    def bridge(self) -> AgentBridge:
        """The bridge being served."""
        return self._bridge

    # ── RPC methods ──

    async def init_session(
        self, raw_params: dict[str, JsonValue]
    ) -> InitSessionResult:
        """Start (or restart) the agent with the requested model."""
        params = InitSessionParams.model_validate(raw_params)
        model = params.model or self._config.default_model

        await self._bridge.start(model)
        return InitSessionResult(
            success=True,
            model=model,
            mode=str(await self._bridge.get_mode()),
        )

    async def chat(self, raw_params: dict[str, JsonValue]) -> ChatResult:
        """Send a message, starting the agent first if it never was."""
        params = ChatParams.model_validate(raw_params)
        logger.info(
            "[Chat] Message: %s, Context length: %d",
            params.message,
            len(params.context),
        )

        await self._bridge.ensure_started(self._config.default_model)

        prompt = build_prompt(params.message, params.context)
        logger.debug(
            "[Chat] Prompt length: %d, Mode: %s",
            len(prompt),
            await self._bridge.get_mode(),
        )

        response = await self._bridge.chat(prompt)
        logger.info("[Chat] Response length: %d", len(response))
        return ChatResult(response=response)

    # ── Middleware ──

    @web.middleware
    async def _cors_middleware(
        self,
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        headers = {
            "Access-Control-Allow-Methods": "POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        }
        origin = request.headers.get("Origin", "")
        if origin.startswith(ALLOWED_ORIGIN_PREFIXES):
            headers["Access-Control-Allow-Origin"] = origin

        if request.method == "OPTIONS":
            return web.Response(status=200, headers=headers)

        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(headers)
            raise
        response.headers.update(headers)
        return response

    @web.middleware
    async def _request_logging_middleware(
        self,
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        start = time.monotonic()
        try:
            response = await handler(request)
        except Exception:
            elapsed_ms = (time.monotonic() - start) * 1000
            logger.exception(
                "HTTP %s %s failed duration_ms=%.1f",
                request.method,
                request.path_qs,
                elapsed_ms,
            )
            raise
        elapsed_ms = (time.monotonic() - start) * 1000
        logger.debug(
            "HTTP %s %s status=%s duration_ms=%.1f",
            request.method,
            request.path_qs,
            response.status,
            elapsed_ms,
        )
        return response

    # ── HTTP handlers ──

    async def _handle_rpc(self, request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _rpc_response(None, code=PARSE_ERROR, message="Parse error")

        try:
            envelope = RPCEnvelope.model_validate(body)
        except ValidationError:
            request_id = body.get("id") if isinstance(body, dict) else None
            if not isinstance(request_id, (int, str)):
                request_id = None
            return _rpc_response(
                request_id, code=INVALID_REQUEST, message="Invalid Request"
            )

        logger.info("[RPC] Method: %s", envelope.method)
        try:
            result = await self._dispatch(envelope)
        except _RPCError as exc:
            return _rpc_response(envelope.id, code=exc.code, message=exc.message)
        return _rpc_response(envelope.id, result=result)

    async def _dispatch(self, envelope: RPCEnvelope) -> BaseModel:
        method = self._methods.get(envelope.method)
        if method is None:
            raise _RPCError(METHOD_NOT_FOUND, "Method not found")

        params = {} if envelope.params is None else envelope.params
        if not isinstance(params, dict):
            raise _RPCError(INVALID_PARAMS, "Invalid params")

        try:
            return await method(params)
        except ValidationError as exc:
            raise _RPCError(INVALID_PARAMS, "Invalid params") from exc
        except GeminiBridgeError as exc:
            logger.error("[%s] Error: %s", envelope.method, exc)
            raise _RPCError(SERVER_ERROR, str(exc)) from exc

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "ok",
                "model": await self._bridge.get_model(),
                "mode": str(await self._bridge.get_mode()),
            }
        )

    async def _on_cleanup(self, app: web.Application) -> None:
        await self._bridge.stop()


def run(config: BridgeConfig | None = None) -> None:
    """Serve the bridge until interrupted."""
    config = config or BridgeConfig.from_env()
    server = BridgeServer(config)

    logger.info(
        "Starting Gemini CLI bridge on http://%s:%d (RPC endpoint: /rpc)",
        config.host,
        config.port,
    )
    web.run_app(server.app, host=config.host, port=config.port, print=None)
