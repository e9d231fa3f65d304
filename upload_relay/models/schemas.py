"""Pydantic schemas for the relay's requests and responses."""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IdentityClaim(BaseModel):
    """Verified identity of the caller, decoded from a Firebase ID token."""

    uid: str = Field(..., min_length=1, description="Stable Firebase user id")
    email: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_token_claims(cls, claims: Dict[str, Any]) -> "IdentityClaim":
        """Build a claim from decoded token fields (`sub` carries the uid)."""
        return cls(
            uid=claims.get("sub") or claims.get("user_id"),
            email=claims.get("email"),
            name=claims.get("name"),
        )

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"


class StagedFile(BaseModel):
    """An inbound file payload written to the staging directory."""

    path: Path
    filename: str
    content_type: str = "application/octet-stream"
    size: int = Field(..., ge=0)


class UploadRequest(BaseModel):
    """Multipart upload request, parsed once per request."""

    model_config = ConfigDict(populate_by_name=True)

    file: StagedFile
    user_id: Optional[str] = Field(None, alias="userId")
    file_name: Optional[str] = Field(None, alias="fileName")
    folder: Optional[str] = None

    @field_validator("user_id", "file_name", "folder", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @property
    def resolved_file_name(self) -> str:
        """The fileName override, else the part's own filename."""
        return self.file_name or self.file.filename


class TelegramFile(BaseModel):
    """`Document` object of the Telegram Bot API."""

    model_config = ConfigDict(extra="ignore")

    file_id: str
    file_unique_id: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class TelegramDocument(BaseModel):
    """`Message` returned by sendDocument, reduced to the fields the relay uses."""

    model_config = ConfigDict(extra="ignore")

    message_id: int
    document: TelegramFile


class UploadResult(BaseModel):
    """Reference to the stored object, returned to the client."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    file_id: str = Field(..., alias="fileId")
    message_id: int = Field(..., alias="messageId")
    file_name: str = Field(..., alias="fileName")
    size: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str


class ErrorResponse(BaseModel):
    """Relay error body."""

    message: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Error kind", examples=["TOKEN_INVALID"])
    error: Optional[str] = Field(None, description="Underlying error description")
    error_id: Optional[str] = Field(None, description="Id for log correlation")
