"""
Upload endpoints.

POST /upload relays an authenticated multipart upload to Telegram.
OPTIONS requests are answered by RelayCORSMiddleware before routing.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException
from starlette.types import Message, Receive

from upload_relay.api.dependencies import get_identity, get_upload_service
from upload_relay.core.exceptions import FileTooLargeError, UploadError
from upload_relay.core.logging import get_api_logger
from upload_relay.models.schemas import ErrorResponse, IdentityClaim, UploadResult
from upload_relay.services.upload_service import UploadService

logger = get_api_logger()

router = APIRouter()

# Allowance for multipart boundaries and text fields on top of the file itself
FORM_OVERHEAD_BYTES = 1024 * 1024


class BodyTailRecorder:
    """ASGI receive wrapper keeping the last bytes of the request body."""

    def __init__(self, receive: Receive, size: int = 512):
        self._receive = receive
        self._size = size
        self.tail = b""

    async def __call__(self) -> Message:
        message = await self._receive()
        if message["type"] == "http.request":
            self.tail = (self.tail + message.get("body", b""))[-self._size:]
        return message


def multipart_boundary(content_type: str) -> Optional[bytes]:
    """Return the boundary of a multipart/form-data content type, if any."""
    media_type, *params = content_type.split(";")
    if media_type.strip().lower() != "multipart/form-data":
        return None
    for param in params:
        key, _, value = param.strip().partition("=")
        if key.lower() == "boundary" and value:
            return value.strip().strip('"').encode("latin-1")
    return None


async def read_form(request: Request) -> FormData:
    """
    Parse the multipart body.

    Raises:
        UploadError: If the body is not valid multipart or ends before the
            closing boundary
    """
    recorder = BodyTailRecorder(request.receive)
    form_request = Request(request.scope, recorder)

    try:
        form = await form_request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        detail = getattr(e, "detail", None) or getattr(e, "message", str(e))
        logger.warning("Multipart parse failed", error=detail)
        raise UploadError(f"Invalid multipart body: {detail}") from e

    boundary = multipart_boundary(request.headers.get("content-type", ""))
    if boundary and b"--" + boundary + b"--" not in recorder.tail:
        await form.close()
        logger.warning("Multipart body truncated")
        raise UploadError("Invalid multipart body: missing closing boundary")

    return form


@router.post(
    "/upload",
    response_model=UploadResult,
    summary="Upload a file",
    operation_id="uploadFile",
    description="""Relay a file to Telegram and return its stored reference.

**Form fields:**
- **file**: the file to store (required)
- **userId**: uid of the owner; must match the token when provided
- **fileName**: name to store the file under (defaults to the part's filename)
- **folder**: folder label recorded in the caption

**Authentication Required:** Firebase ID token in `Authorization: Bearer <token>` header

**Example Request:**
```bash
curl -X POST "http://localhost:3000/upload" \\
  -H "Authorization: Bearer <token>" \\
  -F "file=@report.pdf" \\
  -F "userId=<uid>" \\
  -F "folder=reports"
```

Identical uploads are stored twice and yield distinct file ids.""",
    responses={
        400: {"model": ErrorResponse, "description": "No file provided"},
        401: {"model": ErrorResponse, "description": "Missing or invalid token"},
        403: {"model": ErrorResponse, "description": "User ID mismatch"},
        413: {"model": ErrorResponse, "description": "File too large"},
        500: {"model": ErrorResponse, "description": "Telegram or internal failure"},
    },
)
async def upload_file(
    request: Request,
    identity: IdentityClaim = Depends(get_identity),
    upload_service: UploadService = Depends(get_upload_service),
) -> UploadResult:
    """Parse the form only after the caller is authenticated."""
    content_length = request.headers.get("content-length")
    if (
        content_length
        and content_length.isdigit()
        and int(content_length) > upload_service.max_file_size + FORM_OVERHEAD_BYTES
    ):
        raise FileTooLargeError(upload_service.max_file_size)

    logger.info("Upload request received", uid=identity.uid)

    form = await read_form(request)
    try:
        return await upload_service.process(identity, form)
    finally:
        await form.close()
