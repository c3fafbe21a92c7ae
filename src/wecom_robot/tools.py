"""
Tool descriptors and the dispatcher behind tools/call.

ToolDispatcher.invoke never raises: success and failure both come back as a
ToolResult, with failures flagged `isError` and described by
{kind, message, code, detail}.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from wecom_robot.client import WeComClient, ensure_markdown
from wecom_robot.config import Settings
from wecom_robot.errors import ErrorKind, InvalidInputError, WeComError
from wecom_robot.models.tool import ToolDescriptor, ToolResult

logger = logging.getLogger(__name__)

_WEBHOOK_KEY_PROPERTY = {
    "type": "string",
    "description": "WeCom robot webhook key. Required unless WECOM_WEBHOOK_KEY is set for the server.",
}

TOOLS: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="send_message",
        description=(
            "Send a Markdown V2 message to a WeCom group robot. Supports headings, bold, italics, "
            "lists, quotes, links, inline code, code blocks and tables. Max 4096 bytes (UTF-8). "
            "webhook_key is optional when WECOM_WEBHOOK_KEY is configured."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "webhook_key": _WEBHOOK_KEY_PROPERTY,
                "content": {
                    "type": "string",
                    "description": "Markdown V2 content, e.g. # title, **bold**, *italic*, - item, > quote, [link](url), `code`, |table|",
                },
            },
            "required": ["content"],
            "additionalProperties": False,
        },
    ),
    ToolDescriptor(
        name="send_file",
        description=(
            "Send a file to a WeCom group robot. The file is uploaded first, then sent as a file "
            "message. PDF, Word, Excel, PPT, TXT, ZIP and similar formats, max 20MB. "
            "webhook_key is optional when WECOM_WEBHOOK_KEY is configured."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "webhook_key": _WEBHOOK_KEY_PROPERTY,
                "file_path": {
                    "type": "string",
                    "description": "Absolute or relative path of a local file, e.g. /path/to/report.pdf",
                },
            },
            "required": ["file_path"],
            "additionalProperties": False,
        },
    ),
    ToolDescriptor(
        name="send_image",
        description=(
            "Send an image to a WeCom group robot, from a local path or a URL. JPG and PNG only, "
            "max 2MB. webhook_key is optional when WECOM_WEBHOOK_KEY is configured."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "webhook_key": _WEBHOOK_KEY_PROPERTY,
                "image_path": {
                    "type": "string",
                    "description": "Local image path (use either image_path or image_url)",
                },
                "image_url": {
                    "type": "string",
                    "description": "Image URL (use either image_path or image_url)",
                },
            },
            "required": [],
            "oneOf": [
                {"required": ["image_path"]},
                {"required": ["image_url"]},
            ],
            "additionalProperties": False,
        },
    ),
)

TOOL_NAMES = tuple(t.name for t in TOOLS)

ClientFactory = Callable[[str], WeComClient]


def _require_string(args: dict[str, Any], field: str) -> str:
    value = args.get(field)
    if not value or not isinstance(value, str):
        raise InvalidInputError(f"{field} must be a non-empty string")
    return value


class ToolDispatcher:
    def __init__(self, settings: Settings, client_factory: Optional[ClientFactory] = None):
        self._settings = settings
        self._client_factory = client_factory or (lambda key: WeComClient.from_settings(key, settings))
        self._handlers: dict[str, Callable[[WeComClient, dict[str, Any]], Awaitable[Any]]] = {
            "send_message": self._send_message,
            "send_file": self._send_file,
            "send_image": self._send_image,
        }

    def resolve_key(self, provided: Any) -> str:
        """Per-call key wins over the configured default."""
        if provided is not None and not isinstance(provided, str):
            raise InvalidInputError("webhook_key must be a string")
        if provided:
            return provided
        if self._settings.webhook_key:
            return self._settings.webhook_key
        raise InvalidInputError("no webhook_key provided and WECOM_WEBHOOK_KEY is not set")

    async def invoke(self, name: str, arguments: Optional[dict[str, Any]] = None) -> ToolResult:
        args = arguments or {}
        try:
            handler = self._handlers.get(name)
            if handler is None:
                raise InvalidInputError(f"unknown tool: {name}. Available tools: {', '.join(TOOL_NAMES)}")
            key = self.resolve_key(args.get("webhook_key"))
            self._validate(name, args)
            async with self._client_factory(key) as client:
                result = await handler(client, args)
        except WeComError as e:
            logger.warning("Tool %s failed: %s", name, e)
            return ToolResult.from_data(e.to_dict(), is_error=True)
        except Exception as e:
            logger.exception("Tool %s raised", name)
            err = WeComError(ErrorKind.INTERNAL_ERROR, str(e) or type(e).__name__)
            return ToolResult.from_data(err.to_dict(), is_error=True)
        return ToolResult.from_data(result)

    @staticmethod
    def _validate(name: str, args: dict[str, Any]) -> None:
        """Argument checks that need no I/O."""
        if name == "send_message":
            ensure_markdown(args.get("content"))
        elif name == "send_file":
            _require_string(args, "file_path")
        elif name == "send_image":
            has_path = bool(args.get("image_path"))
            has_url = bool(args.get("image_url"))
            if not has_path and not has_url:
                raise InvalidInputError("either image_path or image_url is required")
            if has_path and has_url:
                raise InvalidInputError("provide only one of image_path and image_url")
            _require_string(args, "image_path" if has_path else "image_url")

    async def _send_message(self, client: WeComClient, args: dict[str, Any]) -> Any:
        result = await client.send_markdown(args["content"])
        return result.model_dump()

    async def _send_file(self, client: WeComClient, args: dict[str, Any]) -> Any:
        upload = await client.upload_media(args["file_path"], "file")
        send = await client.send_file(upload.media_id)
        return {"upload": upload.model_dump(), "send": send.model_dump()}

    async def _send_image(self, client: WeComClient, args: dict[str, Any]) -> Any:
        if args.get("image_path"):
            result = await client.send_image(args["image_path"])
        else:
            result = await client.send_image_from_url(args["image_url"])
        return result.model_dump()
