"""WeComClient against a mocked webhook (httpx.MockTransport)."""

import base64
import hashlib
import json

import httpx
import pytest

from conftest import KEY, Recorder
from wecom_robot import ErrorKind, InvalidInputError, NotFoundError, RemoteError, WeComClient
from wecom_robot import client as client_module
from wecom_robot.client import IMAGE_MAX_BYTES, ensure_markdown

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestSendMarkdown:
    @pytest.mark.asyncio
    async def test_posts_markdown_v2_with_key(self, make_client, recorder):
        async with make_client() as client:
            result = await client.send_markdown("# hello")

        assert result.success
        assert result.data == {"errcode": 0, "errmsg": "ok"}
        (request,) = recorder.requests
        assert request.method == "POST"
        assert request.url.path == "/cgi-bin/webhook/send"
        assert request.url.params["key"] == KEY
        assert json.loads(request.content) == {"msgtype": "markdown_v2", "markdown_v2": {"content": "# hello"}}

    @pytest.mark.asyncio
    async def test_rejects_content_over_4096_bytes_without_request(self, make_client, recorder):
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_markdown("a" * 4097)
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_counts_utf8_bytes_not_characters(self, make_client, recorder):
        # 1366 * 3 bytes = 4098
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_markdown("中" * 1366)
            await client.send_markdown("中" * 1365)
        assert len(recorder.requests) == 1

    @pytest.mark.parametrize("content", ["", None, 42])
    def test_ensure_markdown_rejects_empty_or_non_string(self, content):
        with pytest.raises(InvalidInputError):
            ensure_markdown(content)

    def test_ensure_markdown_accepts_exact_limit(self):
        assert ensure_markdown("a" * 4096) == "a" * 4096


class TestRemoteErrors:
    @pytest.mark.asyncio
    async def test_nonzero_errcode_becomes_remote_error(self, make_client, recorder):
        body = {"errcode": 93000, "errmsg": "invalid webhook url"}
        recorder._responder = lambda req: httpx.Response(200, json=body)
        async with make_client() as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.send_markdown("hi")
        err = exc_info.value
        assert err.kind is ErrorKind.REMOTE_ERROR
        assert err.code == 93000
        assert err.message == "invalid webhook url"
        assert err.details == body

    @pytest.mark.asyncio
    async def test_http_status_becomes_remote_error(self, make_client, recorder):
        recorder._responder = lambda req: httpx.Response(502, text="bad gateway")
        async with make_client() as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.send_markdown("hi")
        assert exc_info.value.code == 502
        assert exc_info.value.details == {"status": 502, "data": "bad gateway"}

    @pytest.mark.asyncio
    async def test_network_failure_becomes_remote_error(self, make_client, recorder):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)
        recorder._responder = boom
        async with make_client() as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.send_markdown("hi")
        assert exc_info.value.code == -1
        assert "connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_json_body_becomes_remote_error(self, make_client, recorder):
        recorder._responder = lambda req: httpx.Response(200, text="<html>")
        async with make_client() as client:
            with pytest.raises(RemoteError):
                await client.send_markdown("hi")


class TestUploadMedia:
    @pytest.mark.asyncio
    async def test_five_bytes_fails(self, make_client, recorder, tmp_path):
        path = tmp_path / "tiny.txt"
        path.write_bytes(b"12345")
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.upload_media(str(path))
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_six_bytes_uploads(self, make_client, recorder, tmp_path):
        path = tmp_path / "report.txt"
        path.write_bytes(b"123456")
        async with make_client() as client:
            result = await client.upload_media(str(path))

        assert result.media_id == "MEDIA-1"
        assert result.type == "file"
        (request,) = recorder.requests
        assert request.url.path == "/cgi-bin/webhook/upload_media"
        assert request.url.params["key"] == KEY
        assert request.url.params["type"] == "file"
        assert b'name="media"; filename="report.txt"' in request.content
        assert b"123456" in request.content

    @pytest.mark.asyncio
    async def test_voice_limit_is_2mb(self, make_client, recorder, tmp_path):
        path = tmp_path / "clip.amr"
        path.write_bytes(b"\x00" * (2 * 1024 * 1024 + 1))
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.upload_media(str(path), "voice")
            # same size is fine as a plain file
            await client.upload_media(str(path), "file")
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_file_is_not_found(self, make_client, tmp_path):
        async with make_client() as client:
            with pytest.raises(NotFoundError):
                await client.upload_media(str(tmp_path / "missing.pdf"))

    @pytest.mark.asyncio
    async def test_unknown_kind(self, make_client, tmp_path):
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.upload_media(str(tmp_path / "a.txt"), "video")

    @pytest.mark.asyncio
    async def test_oversized_file_is_rejected_before_reading(self, make_client, recorder, tmp_path, monkeypatch):
        path = tmp_path / "huge.zip"
        with open(path, "wb") as f:
            f.truncate(20 * 1024 * 1024 + 1)

        async def no_read(*args, **kwargs):
            raise AssertionError("file content should not be read")
        monkeypatch.setattr(client_module, "read_file", no_read)

        async with make_client() as client:
            with pytest.raises(InvalidInputError, match="20MB"):
                await client.upload_media(str(path))
        assert recorder.requests == []


class TestSendFileAndVoice:
    @pytest.mark.asyncio
    async def test_send_file(self, make_client, recorder):
        async with make_client() as client:
            await client.send_file("MEDIA-1")
        assert recorder.sends == [{"msgtype": "file", "file": {"media_id": "MEDIA-1"}}]

    @pytest.mark.asyncio
    async def test_send_voice(self, make_client, recorder):
        async with make_client() as client:
            await client.send_voice("MEDIA-2")
        assert recorder.sends == [{"msgtype": "voice", "voice": {"media_id": "MEDIA-2"}}]

    @pytest.mark.asyncio
    async def test_empty_media_id(self, make_client, recorder):
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_file("")
        assert recorder.requests == []


class TestSendText:
    @pytest.mark.asyncio
    async def test_mentions(self, make_client, recorder):
        async with make_client() as client:
            await client.send_text("deploy done", mentioned_list=["@all"])
        assert recorder.sends == [
            {"msgtype": "text", "text": {"content": "deploy done", "mentioned_list": ["@all"]}},
        ]

    @pytest.mark.asyncio
    async def test_over_2048_bytes(self, make_client, recorder):
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_text("a" * 2049)
        assert recorder.requests == []


class TestSendImage:
    @pytest.mark.asyncio
    async def test_local_png(self, make_client, recorder, tmp_path):
        path = tmp_path / "chart.PNG"
        path.write_bytes(PNG)
        async with make_client() as client:
            await client.send_image(str(path))
        assert recorder.sends == [{
            "msgtype": "image",
            "image": {"base64": base64.b64encode(PNG).decode(), "md5": hashlib.md5(PNG).hexdigest()},
        }]

    @pytest.mark.asyncio
    async def test_rejects_gif(self, make_client, recorder, tmp_path):
        path = tmp_path / "anim.gif"
        path.write_bytes(b"GIF89a")
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_image(str(path))
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_rejects_over_2mb(self, make_client, recorder, tmp_path):
        path = tmp_path / "big.jpg"
        path.write_bytes(b"\xff" * (IMAGE_MAX_BYTES + 1))
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_image(str(path))
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_missing_image(self, make_client, tmp_path):
        async with make_client() as client:
            with pytest.raises(NotFoundError):
                await client.send_image(str(tmp_path / "nope.jpg"))


class TestSendImageFromUrl:
    @staticmethod
    def _responder(image: bytes, status: int = 200):
        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.host == "img.example.com":
                return httpx.Response(status, content=image)
            return httpx.Response(200, json={"errcode": 0, "errmsg": "ok"})
        return respond

    @pytest.mark.asyncio
    async def test_downloads_then_sends(self, make_client, recorder):
        recorder._responder = self._responder(PNG)
        async with make_client() as client:
            await client.send_image_from_url("https://img.example.com/a.png")

        download, send = recorder.requests
        assert download.method == "GET"
        assert str(download.url) == "https://img.example.com/a.png"
        assert "key" not in download.url.params
        assert json.loads(send.content)["image"]["md5"] == hashlib.md5(PNG).hexdigest()

    @pytest.mark.asyncio
    async def test_invalid_url(self, make_client, recorder):
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_image_from_url("not a url")
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_download_too_large(self, make_client, recorder):
        recorder._responder = self._responder(b"\x00" * (IMAGE_MAX_BYTES + 1))
        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_image_from_url("https://img.example.com/huge.jpg")
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_download_status(self, make_client, recorder):
        recorder._responder = self._responder(b"", status=404)
        async with make_client() as client:
            with pytest.raises(RemoteError) as exc_info:
                await client.send_image_from_url("https://img.example.com/gone.jpg")
        assert exc_info.value.code == 404

    @pytest.mark.asyncio
    async def test_follows_redirects(self, make_client, recorder):
        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old.png":
                return httpx.Response(302, headers={"Location": "/new.png"})
            if request.url.path == "/new.png":
                return httpx.Response(200, content=PNG)
            return httpx.Response(200, json={"errcode": 0, "errmsg": "ok"})
        recorder._responder = respond

        async with make_client() as client:
            result = await client.send_image_from_url("https://img.example.com/old.png")

        assert result.success
        assert [r.url.path for r in recorder.requests] == ["/old.png", "/new.png", "/cgi-bin/webhook/send"]
        assert recorder.sends[0]["image"]["md5"] == hashlib.md5(PNG).hexdigest()

    @pytest.mark.asyncio
    async def test_streamed_body_over_limit_without_content_length(self, make_client, recorder):
        async def chunks():
            for _ in range(3):
                yield b"\x00" * (1024 * 1024)

        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.host == "img.example.com":
                return httpx.Response(200, content=chunks())
            return httpx.Response(200, json={"errcode": 0, "errmsg": "ok"})
        recorder._responder = respond

        async with make_client() as client:
            with pytest.raises(InvalidInputError):
                await client.send_image_from_url("https://img.example.com/chunked.jpg")
        assert len(recorder.requests) == 1
        assert recorder.sends == []


def test_client_requires_key():
    with pytest.raises(InvalidInputError):
        WeComClient("")


def test_recorder_default_is_ok():
    recorder = Recorder()
    response = recorder(httpx.Request("POST", "https://x/send"))
    assert response.json() == {"errcode": 0, "errmsg": "ok"}
