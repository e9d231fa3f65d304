"""
Upload Service - staging, ownership checks and forwarding to Telegram.

Request pipeline once the caller is authenticated:
- Parse the multipart form into an UploadRequest, staging the file on disk
- Check the declared userId against the verified identity
- Forward the staged file with a caption to the Bot API
- Delete the staged file on every exit path
"""

import uuid
from pathlib import Path
from typing import Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile

from upload_relay.core.config import Settings
from upload_relay.core.exceptions import (
    AuthorizationError,
    FileTooLargeError,
    UploadError,
    UploadRelayError,
    ValidationError,
)
from upload_relay.core.logging import get_service_logger
from upload_relay.core.telegram_client import TelegramClient
from upload_relay.models.schemas import (
    IdentityClaim,
    StagedFile,
    UploadRequest,
    UploadResult,
)
from upload_relay.utils.formatting import format_bytes, utc_timestamp

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_FILE_NAME = "upload"
CAPTION_RULE = "━━━━━━━━━━━━━━━━"


class UploadService:
    """Relays one authenticated upload to the remote document API."""

    def __init__(
        self,
        telegram: TelegramClient,
        staging_dir: Path,
        max_file_size: int = 50 * 1024 * 1024,
        chunk_size: int = 1024 * 1024,
        require_user_id: bool = False,
        caption_title: str = "Upload Relay",
    ):
        self.logger = get_service_logger("upload")
        self.telegram = telegram
        self.staging_dir = Path(staging_dir)
        self.max_file_size = max_file_size
        self.chunk_size = chunk_size
        self.require_user_id = require_user_id
        self.caption_title = caption_title

    @classmethod
    def from_settings(
        cls, settings: Settings, telegram: TelegramClient
    ) -> "UploadService":
        return cls(
            telegram=telegram,
            staging_dir=settings.UPLOAD_STAGING_DIR,
            max_file_size=settings.MAX_FILE_SIZE,
            chunk_size=settings.UPLOAD_CHUNK_SIZE,
            require_user_id=settings.REQUIRE_USER_ID,
            caption_title=settings.PROJECT_NAME,
        )

    async def process(self, identity: IdentityClaim, form: FormData) -> UploadResult:
        """
        Run the full relay pipeline for one request.

        The staged file is removed before this returns or raises.
        """
        staged: Optional[StagedFile] = None
        try:
            upload_request = await self.parse_form(form)
            staged = upload_request.file
            self.check_ownership(identity, upload_request)
            return await self.forward(identity, upload_request)
        finally:
            if staged is not None:
                self.discard(staged)

    async def parse_form(self, form: FormData) -> UploadRequest:
        """
        Build an UploadRequest from multipart form data.

        Raises:
            ValidationError: If no file part is present
            FileTooLargeError: If the file exceeds max_file_size
        """
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise ValidationError("No file provided")

        staged = await self.stage(upload)

        def field(name: str) -> Optional[str]:
            value = form.get(name)
            return value if isinstance(value, str) else None

        upload_request = UploadRequest(
            file=staged,
            userId=field("userId"),
            fileName=field("fileName"),
            folder=field("folder"),
        )

        self.logger.info(
            "Upload parsed",
            filename=upload_request.resolved_file_name,
            size=staged.size,
            folder=upload_request.folder,
        )
        return upload_request

    async def stage(self, upload: UploadFile) -> StagedFile:
        """
        Copy an uploaded part to a uniquely named file in the staging directory.

        Raises:
            FileTooLargeError: If the part exceeds max_file_size
            UploadError: If the staging directory or file cannot be written
        """
        try:
            await run_in_threadpool(self.staging_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error(
                "Staging directory unavailable",
                staging_dir=str(self.staging_dir),
                error=str(e),
            )
            reason = e.strerror or type(e).__name__
            raise UploadError(f"Could not stage upload: {reason}") from e

        path = self.staging_dir / uuid.uuid4().hex

        size = 0
        try:
            with open(path, "wb") as fh:
                while True:
                    chunk = await upload.read(self.chunk_size)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_file_size:
                        raise FileTooLargeError(self.max_file_size)
                    await run_in_threadpool(fh.write, chunk)
        except OSError as e:
            self._unlink(path)
            self.logger.error("Staging write failed", path=str(path), error=str(e))
            reason = e.strerror or type(e).__name__
            raise UploadError(f"Could not stage upload: {reason}") from e
        except BaseException:
            self._unlink(path)
            raise

        return StagedFile(
            path=path,
            filename=upload.filename or DEFAULT_FILE_NAME,
            content_type=upload.content_type or DEFAULT_CONTENT_TYPE,
            size=size,
        )

    def check_ownership(
        self, identity: IdentityClaim, upload_request: UploadRequest
    ) -> None:
        """
        Ensure the declared owner is the authenticated caller.

        Raises:
            AuthorizationError: If userId differs from the token uid, or is
                missing while require_user_id is set
        """
        declared = upload_request.user_id
        if declared is None and not self.require_user_id:
            return
        if declared != identity.uid:
            self.logger.warning(
                "User ID mismatch", token_uid=identity.uid, declared_user_id=declared
            )
            raise AuthorizationError()

    def build_caption(
        self,
        identity: IdentityClaim,
        upload_request: UploadRequest,
        timestamp: Optional[str] = None,
    ) -> str:
        return "\n".join(
            [
                f"📁 {self.caption_title}",
                CAPTION_RULE,
                f"👤 User: {identity.display_name}",
                f"🆔 UID: {identity.uid}",
                f"📂 Folder: {upload_request.folder or 'Root'}",
                f"📄 File: {upload_request.resolved_file_name}",
                f"📊 Size: {format_bytes(upload_request.file.size)}",
                f"📅 Date: {timestamp or utc_timestamp()}",
                CAPTION_RULE,
            ]
        )

    async def forward(
        self, identity: IdentityClaim, upload_request: UploadRequest
    ) -> UploadResult:
        """
        Send the staged file to Telegram.

        Raises:
            UpstreamError: If Telegram reports ok=false
            UploadError: On any other failure while forwarding
        """
        file_name = upload_request.resolved_file_name
        staged = upload_request.file

        try:
            document = await self.telegram.send_document(
                path=staged.path,
                filename=file_name,
                content_type=staged.content_type,
                caption=self.build_caption(identity, upload_request),
            )
        except UploadRelayError:
            raise
        except Exception as e:
            self.logger.error(
                "Upload forwarding failed",
                error=str(e),
                error_type=type(e).__name__,
                filename=file_name,
                uid=identity.uid,
            )
            raise UploadError(str(e)) from e

        self.logger.info(
            "Upload relayed",
            uid=identity.uid,
            filename=file_name,
            size=staged.size,
            message_id=document.message_id,
        )

        return UploadResult(
            fileId=document.document.file_id,
            messageId=document.message_id,
            fileName=file_name,
            size=staged.size,
        )

    def discard(self, staged: StagedFile) -> None:
        """Delete a staged file. Failures are logged, never raised."""
        self._unlink(staged.path)

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.error(
                "Failed to clean up staged file", path=str(path), error=str(e)
            )
