from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from upload_relay.core.config import Settings
from upload_relay.core.exceptions import ConfigurationError, UpstreamError
from upload_relay.core.logging import get_service_logger
from upload_relay.models.schemas import TelegramDocument

logger = get_service_logger("telegram_client")

# Bot API caption limit, in UTF-16 code units
MAX_CAPTION_LENGTH = 1024


def truncate_caption(caption: str, limit: int = MAX_CAPTION_LENGTH) -> str:
    """Cut a caption to the Bot API limit, counted in UTF-16 code units."""
    encoded = caption.encode("utf-16-le")
    if len(encoded) <= limit * 2:
        return caption
    # A split surrogate pair decodes to nothing
    return encoded[: limit * 2].decode("utf-16-le", errors="ignore")


class TelegramClientError(Exception):
    """Transport or protocol failure talking to the Bot API."""

    pass


class TelegramClient:
    """Telegram Bot API client used as document storage.

    Holds one pooled httpx.AsyncClient for the life of the process.
    """

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        base_url: str = "https://api.telegram.org",
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logger
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "TelegramClient":
        return cls(
            bot_token=settings.TELEGRAM_BOT_TOKEN,
            chat_id=settings.TELEGRAM_CHAT_ID,
            base_url=settings.TELEGRAM_API_BASE_URL,
            timeout=settings.TELEGRAM_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    @property
    def chat_id(self) -> Optional[str]:
        return self._chat_id

    @property
    def client(self) -> httpx.AsyncClient:
        """The underlying httpx client, created on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=30.0),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _method_url(self, method: str) -> str:
        return f"{self._base_url}/bot{self._bot_token}/{method}"

    async def send_document(
        self,
        path: Path,
        filename: str,
        content_type: str,
        caption: str,
        chat_id: Optional[str] = None,
    ) -> TelegramDocument:
        """
        Upload a file with sendDocument.

        Args:
            path: Local file to stream
            filename: Name the document is stored under
            content_type: MIME type sent with the document part
            caption: Message caption, cut to the Bot API limit
            chat_id: Destination chat, defaults to the configured one

        Returns:
            TelegramDocument describing the stored message

        Raises:
            UpstreamError: If the Bot API answers with ok=false
            TelegramClientError: On transport failures or malformed responses
            ConfigurationError: If the bot token or chat id is missing
        """
        chat_id = chat_id or self._chat_id
        if not self._bot_token or not chat_id:
            raise ConfigurationError(
                "Telegram is not configured: set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID"
            )

        self.logger.info(
            "Sending document to Telegram",
            filename=filename,
            content_type=content_type,
        )

        try:
            with open(path, "rb") as fh:
                response = await self.client.post(
                    self._method_url("sendDocument"),
                    data={"chat_id": chat_id, "caption": truncate_caption(caption)},
                    files={"document": (filename, fh, content_type)},
                )
        except httpx.TimeoutException as e:
            raise TelegramClientError(
                f"Telegram request timed out after {self._timeout:g}s"
            ) from e
        except httpx.HTTPError as e:
            # str(e) may carry the request URL, which embeds the bot token
            raise TelegramClientError(
                f"Telegram request failed: {type(e).__name__}"
            ) from e

        payload = self._decode(response)

        if not payload.get("ok"):
            description = payload.get("description") or (
                f"HTTP {response.status_code}"
            )
            self.logger.error(
                "Telegram rejected document",
                status_code=response.status_code,
                description=description,
            )
            raise UpstreamError(description)

        try:
            document = TelegramDocument.model_validate(payload.get("result"))
        except PydanticValidationError as e:
            raise TelegramClientError(
                "Telegram response did not contain a document"
            ) from e

        self.logger.info(
            "Telegram accepted document",
            message_id=document.message_id,
            file_id=document.document.file_id,
        )
        return document

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise TelegramClientError(
                f"Telegram returned a non-JSON response (HTTP {response.status_code})"
            ) from e
        if not isinstance(payload, dict):
            raise TelegramClientError("Telegram returned an unexpected response")
        return payload
