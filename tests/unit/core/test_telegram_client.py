"""
Unit tests for the Telegram Bot API client.
"""

import httpx
import pytest


@pytest.fixture
def document_path(tmp_path):
    path = tmp_path / "payload.bin"
    path.write_bytes(b"\x00\x01binary\xff")
    return path


class TestSendDocument:
    """Tests for TelegramClient.send_document."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success(self, telegram_client, telegram_recorder, document_path):
        document = await telegram_client.send_document(
            path=document_path,
            filename="payload.bin",
            content_type="application/octet-stream",
            caption="hello",
        )

        assert document.message_id == 101
        assert document.document.file_id.startswith("BQACAgQAAx0-")
        request = telegram_recorder.requests[0]
        assert request.url.host == "api.telegram.org"
        assert request.url.path.endswith("/sendDocument")
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b"\x00\x01binary\xff" in request.content
        assert b'name="caption"' in request.content

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_caption_truncated(
        self, telegram_client, telegram_recorder, document_path
    ):
        from upload_relay.core.telegram_client import MAX_CAPTION_LENGTH

        await telegram_client.send_document(
            path=document_path,
            filename="payload.bin",
            content_type="application/octet-stream",
            caption="a" * (MAX_CAPTION_LENGTH + 50),
        )

        body = telegram_recorder.requests[0].content
        assert b"a" * MAX_CAPTION_LENGTH in body
        assert b"a" * (MAX_CAPTION_LENGTH + 1) not in body

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_caption_truncated_in_utf16_units(
        self, telegram_client, telegram_recorder, document_path
    ):
        from upload_relay.core.telegram_client import MAX_CAPTION_LENGTH

        # Each emoji is one code point but two UTF-16 units
        await telegram_client.send_document(
            path=document_path,
            filename="payload.bin",
            content_type="application/octet-stream",
            caption="📁" * MAX_CAPTION_LENGTH,
        )

        body = telegram_recorder.requests[0].content
        half = MAX_CAPTION_LENGTH // 2
        assert ("📁" * half).encode() in body
        assert ("📁" * (half + 1)).encode() not in body

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ok_false_raises_upstream_error(
        self, telegram_client, telegram_recorder, document_path
    ):
        from upload_relay.core.exceptions import UpstreamError

        telegram_recorder.fail_with("Bad Request: chat not found")

        with pytest.raises(UpstreamError) as exc_info:
            await telegram_client.send_document(
                path=document_path,
                filename="payload.bin",
                content_type="application/octet-stream",
                caption="",
            )

        assert exc_info.value.description == "Bad Request: chat not found"
        assert exc_info.value.details["error"] == "Bad Request: chat not found"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ok_false_without_description(
        self, telegram_client, telegram_recorder, document_path
    ):
        from upload_relay.core.exceptions import UpstreamError

        telegram_recorder.payload = {"ok": False}
        telegram_recorder.status_code = 502

        with pytest.raises(UpstreamError) as exc_info:
            await telegram_client.send_document(
                path=document_path,
                filename="payload.bin",
                content_type="application/octet-stream",
                caption="",
            )

        assert exc_info.value.description == "HTTP 502"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_json_response(self, document_path):
        from upload_relay.core.telegram_client import TelegramClient, TelegramClientError

        client = TelegramClient(
            bot_token="1:abc",
            chat_id="42",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(502, text="<html>Bad Gateway</html>")
            ),
        )

        with pytest.raises(TelegramClientError):
            await client.send_document(
                path=document_path,
                filename="payload.bin",
                content_type="application/octet-stream",
                caption="",
            )
        await client.aclose()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_result_without_document(
        self, telegram_client, telegram_recorder, document_path
    ):
        from upload_relay.core.telegram_client import TelegramClientError

        telegram_recorder.payload = {"ok": True, "result": {"message_id": 5}}

        with pytest.raises(TelegramClientError):
            await telegram_client.send_document(
                path=document_path,
                filename="payload.bin",
                content_type="application/octet-stream",
                caption="",
            )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout(self, telegram_client, telegram_recorder, document_path):
        from upload_relay.core.telegram_client import TelegramClientError

        telegram_recorder.error = httpx.ReadTimeout("timed out")

        with pytest.raises(TelegramClientError, match="timed out"):
            await telegram_client.send_document(
                path=document_path,
                filename="payload.bin",
                content_type="application/octet-stream",
                caption="",
            )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_configured(self, document_path):
        from upload_relay.core.exceptions import ConfigurationError
        from upload_relay.core.telegram_client import TelegramClient

        client = TelegramClient(bot_token=None, chat_id=None)

        assert client.is_configured is False
        with pytest.raises(ConfigurationError):
            await client.send_document(
                path=document_path,
                filename="payload.bin",
                content_type="application/octet-stream",
                caption="",
            )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_aclose_reopens_on_next_use(self, telegram_client):
        first = telegram_client.client
        await telegram_client.aclose()

        assert first.is_closed is True
        assert telegram_client.client is not first
        await telegram_client.aclose()


class TestTruncateCaption:
    """Tests for truncate_caption."""

    @pytest.mark.unit
    def test_short_caption_unchanged(self):
        from upload_relay.core.telegram_client import truncate_caption

        assert truncate_caption("📄 File: report.pdf") == "📄 File: report.pdf"

    @pytest.mark.unit
    def test_never_splits_surrogate_pair(self):
        from upload_relay.core.telegram_client import truncate_caption

        caption = "a" + "📁" * 10

        truncated = truncate_caption(caption, limit=4)

        assert truncated == "a📁"
        assert len(truncated.encode("utf-16-le")) // 2 <= 4
