"""
WeComClient: one webhook key, one HTTP client.

Message send, media upload and image send for the group-robot webhook.
Inputs are validated before any request is made.
"""

import asyncio
import base64
import hashlib
import mimetypes
from pathlib import Path
from types import TracebackType
from typing import Any, Optional, Type
from urllib.parse import urlparse

import httpx

from wecom_robot.config import DEFAULT_BASE_URL, Settings
from wecom_robot.errors import InvalidInputError, NotFoundError
from wecom_robot.models.message import SendResult, UploadResult
from wecom_robot.transport.http import HttpClient

MB = 1024 * 1024

MARKDOWN_MAX_BYTES = 4096
TEXT_MAX_BYTES = 2048
MEDIA_MIN_BYTES = 5  # the upload endpoint rejects files of 5 bytes or less
MEDIA_SIZE_LIMITS = {
    "file": 20 * MB,
    "voice": 2 * MB,
}
IMAGE_MAX_BYTES = 2 * MB
IMAGE_FORMATS = ("jpg", "jpeg", "png")


def ensure_markdown(content: Any) -> str:
    """Validate a markdown_v2 body: non-empty string, at most 4096 bytes as UTF-8."""
    if not content or not isinstance(content, str):
        raise InvalidInputError("content must be a non-empty string")
    size = len(content.encode("utf-8"))
    if size > MARKDOWN_MAX_BYTES:
        raise InvalidInputError(
            f"content too long: {size} bytes, max {MARKDOWN_MAX_BYTES} bytes",
            details={"bytes": size, "max_bytes": MARKDOWN_MAX_BYTES},
        )
    return content


def guess_mime_type(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"


async def file_size(path: str, what: str = "file") -> int:
    try:
        stat = await asyncio.to_thread(Path(path).stat)
    except FileNotFoundError:
        raise NotFoundError(f"{what} not found: {path}")
    except OSError as e:
        raise InvalidInputError(f"cannot read {what} {path}: {e.strerror or e}")
    return stat.st_size


async def read_file(path: str, what: str = "file") -> bytes:
    try:
        return await asyncio.to_thread(Path(path).read_bytes)
    except FileNotFoundError:
        raise NotFoundError(f"{what} not found: {path}")
    except OSError as e:
        raise InvalidInputError(f"cannot read {what} {path}: {e.strerror or e}")


class WeComClient:
    """Async client for a single webhook key."""

    def __init__(
        self,
        webhook_key: str,
        base_url: str = DEFAULT_BASE_URL,
        send_timeout: float = 30.0,
        upload_timeout: float = 60.0,
        download_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not webhook_key or not isinstance(webhook_key, str):
            raise InvalidInputError("webhook_key must be a non-empty string")
        self._upload_timeout = upload_timeout
        self._download_timeout = download_timeout
        self.http = HttpClient(webhook_key, base_url=base_url, timeout=send_timeout, transport=transport)

    @classmethod
    def from_settings(
        cls,
        webhook_key: str,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "WeComClient":
        return cls(
            webhook_key,
            base_url=settings.base_url,
            send_timeout=settings.send_timeout,
            upload_timeout=settings.upload_timeout,
            download_timeout=settings.download_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "WeComClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        await self.http.close()

    async def send_message(self, msgtype: str, content: dict[str, Any]) -> SendResult:
        """POST /send with {msgtype, <msgtype>: content}."""
        data = await self.http.post("/send", {"msgtype": msgtype, msgtype: content})
        return SendResult(data=data)

    async def send_markdown(self, content: str) -> SendResult:
        return await self.send_message("markdown_v2", {"content": ensure_markdown(content)})

    async def send_text(
        self,
        content: str,
        mentioned_list: Optional[list[str]] = None,
        mentioned_mobile_list: Optional[list[str]] = None,
    ) -> SendResult:
        """Plain text message; `mentioned_list` may contain "@all"."""
        if not content or not isinstance(content, str):
            raise InvalidInputError("content must be a non-empty string")
        size = len(content.encode("utf-8"))
        if size > TEXT_MAX_BYTES:
            raise InvalidInputError(f"content too long: {size} bytes, max {TEXT_MAX_BYTES} bytes")
        body: dict[str, Any] = {"content": content}
        if mentioned_list:
            body["mentioned_list"] = mentioned_list
        if mentioned_mobile_list:
            body["mentioned_mobile_list"] = mentioned_mobile_list
        return await self.send_message("text", body)

    async def upload_media(self, file_path: str, kind: str = "file") -> UploadResult:
        """Upload a file or voice clip; the returned media_id is valid for 3 days."""
        if not file_path or not isinstance(file_path, str):
            raise InvalidInputError("file_path must be a non-empty string")
        if kind not in MEDIA_SIZE_LIMITS:
            raise InvalidInputError(f"kind must be one of: {', '.join(MEDIA_SIZE_LIMITS)}")

        limit = MEDIA_SIZE_LIMITS[kind]
        self._check_media_size(await file_size(file_path), limit)
        content = await read_file(file_path)
        # re-check the bytes actually read
        self._check_media_size(len(content), limit)

        data = await self.http.upload(
            "/upload_media",
            filename=Path(file_path).name,
            content=content,
            content_type=guess_mime_type(file_path),
            params={"type": kind},
            timeout=self._upload_timeout,
        )
        return UploadResult(media_id=data.get("media_id", ""), type=data.get("type"), created_at=data.get("created_at"))

    async def send_file(self, media_id: str) -> SendResult:
        if not media_id or not isinstance(media_id, str):
            raise InvalidInputError("media_id must be a non-empty string")
        return await self.send_message("file", {"media_id": media_id})

    async def send_voice(self, media_id: str) -> SendResult:
        if not media_id or not isinstance(media_id, str):
            raise InvalidInputError("media_id must be a non-empty string")
        return await self.send_message("voice", {"media_id": media_id})

    async def send_image(self, image_path: str) -> SendResult:
        """Send a local JPG/PNG of at most 2MB."""
        if not image_path or not isinstance(image_path, str):
            raise InvalidInputError("image_path must be a non-empty string")
        ext = Path(image_path).suffix.lstrip(".").lower()
        if ext not in IMAGE_FORMATS:
            raise InvalidInputError(
                f"unsupported image format: {ext or '(none)'}, supported: {', '.join(IMAGE_FORMATS)}"
            )
        if await file_size(image_path, "image file") > IMAGE_MAX_BYTES:
            raise InvalidInputError(f"image exceeds size limit: max {IMAGE_MAX_BYTES // MB}MB")
        content = await read_file(image_path, "image file")
        return await self._send_image_bytes(content)

    async def send_image_from_url(self, image_url: str) -> SendResult:
        """Download an image (at most 2MB) and send it."""
        if not image_url or not isinstance(image_url, str):
            raise InvalidInputError("image_url must be a non-empty string")
        parsed = urlparse(image_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidInputError(f"invalid URL: {image_url}")
        content = await self.http.download(image_url, IMAGE_MAX_BYTES, timeout=self._download_timeout)
        return await self._send_image_bytes(content)

    @staticmethod
    def _check_media_size(size: int, limit: int) -> None:
        if size <= MEDIA_MIN_BYTES:
            raise InvalidInputError(f"file must be larger than {MEDIA_MIN_BYTES} bytes")
        if size > limit:
            raise InvalidInputError(f"file exceeds size limit: max {limit // MB}MB")

    async def _send_image_bytes(self, content: bytes) -> SendResult:
        if len(content) > IMAGE_MAX_BYTES:
            raise InvalidInputError(f"image exceeds size limit: max {IMAGE_MAX_BYTES // MB}MB")
        if not content:
            raise InvalidInputError("image is empty")
        return await self.send_message("image", {
            "base64": base64.b64encode(content).decode("ascii"),
            "md5": hashlib.md5(content).hexdigest(),
        })
