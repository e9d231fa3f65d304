import base64
import binascii
import json
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # FastAPI Configuration
    PROJECT_NAME: str = "Upload Relay"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Firebase Authentication
    FIREBASE_SERVICE_ACCOUNT: Optional[str] = Field(
        default=None,
        description="Firebase service account JSON, raw or base64-encoded",
    )

    # Telegram Bot API
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None
    TELEGRAM_API_BASE_URL: str = "https://api.telegram.org"
    TELEGRAM_TIMEOUT_SECONDS: float = Field(
        default=300.0,
        gt=0,
        description="Timeout for a single sendDocument call in seconds",
    )

    # Upload Configuration
    MAX_FILE_SIZE: int = Field(
        default=50 * 1024 * 1024,
        gt=0,
        description="Maximum accepted upload size in bytes (Bot API limit is 50MB)",
    )
    UPLOAD_STAGING_DIR: Path = Path(tempfile.gettempdir()) / "upload-relay"
    UPLOAD_CHUNK_SIZE: int = 1024 * 1024
    REQUIRE_USER_ID: bool = Field(
        default=False,
        description="Reject uploads that do not declare a userId field",
    )

    # CORS Settings
    FRONTEND_URL: Optional[str] = None
    CORS_METHODS: List[str] = ["GET", "POST", "OPTIONS"]
    CORS_HEADERS: List[str] = ["Authorization", "Content-Type"]
    CORS_MAX_AGE: int = 86400

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # json or text

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("TELEGRAM_API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("CORS_METHODS", "CORS_HEADERS", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse list settings from comma-separated string or JSON array."""
        if isinstance(v, str) and not v.startswith("["):
            return [x.strip() for x in v.split(",") if x.strip()]
        return v

    @property
    def allowed_origin(self) -> str:
        """Origin advertised in Access-Control-Allow-Origin."""
        return self.FRONTEND_URL.rstrip("/") if self.FRONTEND_URL else "*"

    @property
    def firebase_service_account_info(self) -> Optional[Dict[str, Any]]:
        """
        Decode FIREBASE_SERVICE_ACCOUNT into a dict.

        Accepts the raw JSON document or its base64 encoding.

        Raises:
            ValueError: If the value is set but is neither form
        """
        raw = (self.FIREBASE_SERVICE_ACCOUNT or "").strip()
        if not raw:
            return None

        if not raw.startswith("{"):
            try:
                raw = base64.b64decode(raw, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise ValueError(
                    "FIREBASE_SERVICE_ACCOUNT is neither JSON nor base64-encoded JSON"
                ) from e

        try:
            info = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError("FIREBASE_SERVICE_ACCOUNT is not valid JSON") from e

        if not isinstance(info, dict):
            raise ValueError("FIREBASE_SERVICE_ACCOUNT must be a JSON object")
        return info

    @property
    def telegram_configured(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN and self.TELEGRAM_CHAT_ID)

    def environment_check(self) -> Dict[str, str]:
        """Report which required secrets are present, without their values."""

        def state(value: Optional[str]) -> str:
            return "set" if value else "missing"

        return {
            "firebase": state(self.FIREBASE_SERVICE_ACCOUNT),
            "telegram": state(self.TELEGRAM_BOT_TOKEN),
            "chatId": state(self.TELEGRAM_CHAT_ID),
        }

    @property
    def is_development(self) -> bool:
        """Check if the application is running in development mode."""
        return self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production mode."""
        return self.ENVIRONMENT.lower() in ["production", "prod"]


# Global settings instance
settings = Settings()
