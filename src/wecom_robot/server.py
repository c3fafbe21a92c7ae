"""
MCP stdio server: newline-delimited JSON-RPC 2.0 on stdin/stdout.

Each input line is handled as its own task, started in arrival order. A
response is written as one line; logs go to stderr only.
"""

import asyncio
import contextlib
import json
import logging
import signal
import sys
from typing import Any, Awaitable, Callable, Optional, TextIO

from pydantic import ValidationError

from wecom_robot.config import Settings
from wecom_robot.errors import ProtocolError
from wecom_robot.logs import truncate
from wecom_robot.models.jsonrpc import (
    JSONRPC_VERSION,
    JsonRpcErrorCode,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    ToolCallParams,
)
from wecom_robot.tools import TOOLS, ToolDispatcher

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {
    "name": "wecom-robot-mcp",
    "version": "0.1.0",
    "description": "WeCom group robot MCP server: send messages, files and images",
}

Handler = Callable[[JsonRpcRequest], Awaitable[Optional[dict[str, Any]]]]


class McpServer:
    def __init__(self, dispatcher: ToolDispatcher, stdout: Optional[TextIO] = None):
        self._dispatcher = dispatcher
        self._stdout = stdout or sys.stdout
        self._pending: set[asyncio.Task[None]] = set()
        self.initialized = False
        self._methods: dict[str, Handler] = {
            "initialize": self._initialize,
            "initialized": self._initialized,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
        }

    # -- line handling --

    async def handle_line(self, line: str) -> Optional[dict[str, Any]]:
        """Handle one input line; returns the response written, or None."""
        if not line.strip():
            return None
        logger.debug("Received: %s", truncate(line.strip(), 100))

        try:
            raw = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("JSON parse failed: %s", e)
            return self._send(JsonRpcResponse.failure(None, JsonRpcErrorCode.PARSE_ERROR, "Parse error", str(e)))

        raw_id = raw.get("id") if isinstance(raw, dict) else None
        if not isinstance(raw, dict) or raw.get("jsonrpc") != JSONRPC_VERSION:
            logger.warning("Unsupported JSON-RPC version: %r", raw.get("jsonrpc") if isinstance(raw, dict) else raw)
            return self._send(JsonRpcResponse.failure(
                raw_id, JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request", "only JSON-RPC 2.0 is supported",
            ))

        try:
            request = JsonRpcRequest.model_validate(raw)
        except ValidationError as e:
            return self._send(JsonRpcResponse.failure(
                raw_id, JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request", e.errors(include_url=False)[0]["msg"],
            ))

        try:
            response = await self._route(request)
        except ProtocolError as e:
            response = JsonRpcResponse.failure(request.id, e.code, e.message, e.data)
        except Exception as e:
            logger.exception("Request %s failed", request.method)
            response = JsonRpcResponse.failure(
                request.id, JsonRpcErrorCode.INTERNAL_ERROR, "Internal error", str(e) or type(e).__name__,
            )

        if response is None or request.is_notification:
            return None
        return self._send(response)

    async def _route(self, request: JsonRpcRequest) -> Optional[JsonRpcResponse]:
        logger.debug("Routing method=%s", request.method)
        handler = self._methods.get(request.method)
        if handler is None:
            logger.warning("Unknown method: %s", request.method)
            raise ProtocolError(JsonRpcErrorCode.METHOD_NOT_FOUND, "Method not found", f"unknown method: {request.method}")
        result = await handler(request)
        if result is None:
            return None
        return JsonRpcResponse.success(request.id, result)

    # -- method handlers --

    async def _initialize(self, request: JsonRpcRequest) -> dict[str, Any]:
        client_info = (request.params or {}).get("clientInfo", {})
        logger.info("Client initializing: %s", json.dumps(client_info, ensure_ascii=False))
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}, "resources": {}, "prompts": {}},
            "serverInfo": SERVER_INFO,
        }

    async def _initialized(self, request: JsonRpcRequest) -> None:
        # advisory only; no method is gated on it
        self.initialized = True
        logger.info("Client initialized")
        return None

    async def _ping(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {}

    async def _tools_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {"tools": [t.to_dict() for t in TOOLS]}

    async def _tools_call(self, request: JsonRpcRequest) -> dict[str, Any]:
        try:
            params = ToolCallParams.model_validate(request.params or {})
        except ValidationError as e:
            raise ProtocolError(
                JsonRpcErrorCode.INVALID_PARAMS, "Invalid params", e.errors(include_url=False)[0]["msg"],
            )
        if not params.name:
            raise ProtocolError(JsonRpcErrorCode.INVALID_PARAMS, "Invalid params", "missing tool name")
        logger.info(
            "Calling tool %s, arguments: %s",
            params.name, truncate(json.dumps(params.arguments or {}, ensure_ascii=False), 200),
        )
        result = await self._dispatcher.invoke(params.name, params.arguments)
        return result.to_dict()

    async def _resources_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {"resources": []}

    async def _resources_read(self, request: JsonRpcRequest) -> dict[str, Any]:
        raise ProtocolError(JsonRpcErrorCode.METHOD_NOT_FOUND, "Method not found", "resources are not supported")

    async def _prompts_list(self, request: JsonRpcRequest) -> dict[str, Any]:
        return {"prompts": []}

    async def _prompts_get(self, request: JsonRpcRequest) -> dict[str, Any]:
        raise ProtocolError(JsonRpcErrorCode.METHOD_NOT_FOUND, "Method not found", "prompts are not supported")

    # -- output --

    def _send(self, response: JsonRpcResponse) -> dict[str, Any]:
        payload = response.to_dict()
        self._write(payload)
        return payload

    def notify(self, method: str, params: Optional[dict[str, Any]] = None) -> None:
        self._write(JsonRpcNotification(method=method, params=params or {}).model_dump())

    def _write(self, payload: dict[str, Any]) -> None:
        line = json.dumps(payload, ensure_ascii=False)
        self._stdout.write(line + "\n")
        self._stdout.flush()
        logger.debug("Sent: %s", truncate(line, 100))

    # -- lifecycle --

    def dispatch(self, line: str) -> None:
        """Start handling a line without waiting for it to finish."""
        task = asyncio.create_task(self._handle_safely(line))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _handle_safely(self, line: str) -> None:
        try:
            await self.handle_line(line)
        except Exception:
            logger.exception("Failed to handle line")

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def serve(self, reader: asyncio.StreamReader, stop: Optional[asyncio.Event] = None) -> None:
        """Read lines until EOF or `stop` is set, then send notifications/closed."""
        stop = stop or asyncio.Event()
        stop_wait = asyncio.create_task(stop.wait())
        logger.info("MCP server started, waiting for requests")
        try:
            while True:
                read = asyncio.create_task(reader.readline())
                done, _ = await asyncio.wait({read, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
                if read not in done:
                    read.cancel()
                    logger.info("Shutdown requested")
                    break
                try:
                    raw = read.result()
                except ValueError as e:
                    logger.warning("Oversized line: %s", e)
                    self._send(JsonRpcResponse.failure(
                        None, JsonRpcErrorCode.PARSE_ERROR, "Parse error", f"line exceeds read limit: {e}",
                    ))
                    continue
                if not raw:
                    logger.info("stdin closed")
                    drain = asyncio.create_task(self.drain())
                    await asyncio.wait({drain, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
                    if not drain.done():
                        drain.cancel()
                        logger.info("Shutdown requested")
                    break
                self.dispatch(raw.decode("utf-8", errors="replace"))
        finally:
            stop_wait.cancel()
        logger.info("Shutting down server")
        with contextlib.suppress(OSError, ValueError):
            self.notify("notifications/closed")


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=2**24)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


async def run_stdio(settings: Settings) -> None:
    if settings.webhook_key:
        logger.info("WECOM_WEBHOOK_KEY configured: %s", settings.masked_key())
    else:
        logger.warning("WECOM_WEBHOOK_KEY is not set; every tool call must pass webhook_key")

    server = McpServer(ToolDispatcher(settings))
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    await server.serve(await _stdin_reader(), stop)
