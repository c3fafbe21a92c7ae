"""
REST HTTP client for the WeCom group-robot webhook.

Every request carries the webhook key as the `key` query parameter. Responses
are unwrapped into the JSON body; anything other than `errcode == 0` becomes
a RemoteError, as do transport failures.
"""

from typing import Any, Optional

import httpx

from wecom_robot.config import DEFAULT_BASE_URL
from wecom_robot.errors import InvalidInputError, RemoteError

USER_AGENT = "wecom-robot/0.1.0"


def _body_or_text(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text[:200]


def _network_error(exc: httpx.HTTPError) -> RemoteError:
    reason = str(exc) or type(exc).__name__
    return RemoteError(f"network request failed: {reason}", details={"error": reason})


class HttpClient:
    def __init__(
        self,
        key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._key = key
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _unwrap(resp: httpx.Response) -> dict[str, Any]:
        """Unwrap the standard webhook response: { "errcode": 0, "errmsg": "ok", ... }"""
        if not resp.is_success:
            raise RemoteError(
                f"API response error: {resp.status_code} {resp.reason_phrase}",
                code=resp.status_code,
                details={"status": resp.status_code, "data": _body_or_text(resp)},
            )
        try:
            data = resp.json()
        except ValueError:
            raise RemoteError("API response is not valid JSON", details={"body": resp.text[:200]})
        if not isinstance(data, dict):
            raise RemoteError("API response is not a JSON object", details={"body": data})
        errcode = data.get("errcode")
        if errcode != 0:
            code = errcode if isinstance(errcode, int) else -1
            raise RemoteError(data.get("errmsg") or "webhook call failed", code=code, details=data)
        return data

    async def post(self, path: str, body: dict[str, Any], timeout: Optional[float] = None) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"timeout": timeout} if timeout is not None else {}
        try:
            resp = await self._client.post(path, json=body, params={"key": self._key}, **kwargs)
        except httpx.HTTPError as e:
            raise _network_error(e) from e
        return self._unwrap(resp)

    async def upload(
        self,
        path: str,
        filename: str,
        content: bytes,
        content_type: str,
        params: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> dict[str, Any]:
        """Multipart upload with the file in the `media` field."""
        kwargs: dict[str, Any] = {"timeout": timeout} if timeout is not None else {}
        try:
            resp = await self._client.post(
                path,
                files={"media": (filename, content, content_type)},
                params={"key": self._key, **(params or {})},
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise _network_error(e) from e
        return self._unwrap(resp)

    async def download(self, url: str, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        """GET an absolute URL, refusing bodies larger than max_bytes."""
        kwargs: dict[str, Any] = {"timeout": timeout} if timeout is not None else {}
        limit_mb = max_bytes / 1024 / 1024
        try:
            async with self._client.stream("GET", url, follow_redirects=True, **kwargs) as resp:
                if resp.status_code != 200:
                    raise RemoteError(f"download failed: HTTP {resp.status_code}", code=resp.status_code)
                declared = resp.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > max_bytes:
                    raise InvalidInputError(f"download exceeds size limit: max {limit_mb:g}MB")
                buf = bytearray()
                async for chunk in resp.aiter_bytes():
                    buf.extend(chunk)
                    if len(buf) > max_bytes:
                        raise InvalidInputError(f"download exceeds size limit: max {limit_mb:g}MB")
                return bytes(buf)
        except httpx.HTTPError as e:
            raise _network_error(e) from e

    async def close(self) -> None:
        await self._client.aclose()
