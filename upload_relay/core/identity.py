from typing import Any, Dict, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as auth_requests
from google.oauth2 import id_token, service_account
from starlette.concurrency import run_in_threadpool

from upload_relay.core.config import Settings
from upload_relay.core.exceptions import ConfigurationError, TokenInvalidError
from upload_relay.core.logging import get_auth_logger
from upload_relay.models.schemas import IdentityClaim

logger = get_auth_logger()


class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens against Google's public signing keys.

    Created once per process in the application lifespan and shared read-only
    between requests. When no service account is configured the verifier stays
    in disabled mode and every verification raises ConfigurationError.
    """

    def __init__(
        self,
        service_account_info: Optional[Dict[str, Any]] = None,
        project_id: Optional[str] = None,
        clock_skew_seconds: int = 0,
    ):
        self.logger = logger
        self._service_account_info = service_account_info
        self._project_id = project_id
        self._clock_skew_seconds = clock_skew_seconds
        self._credentials: Optional[service_account.Credentials] = None
        self._request: Optional[auth_requests.Request] = None
        self._initialized = False
        self._initialization_error: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseTokenVerifier":
        try:
            info = settings.firebase_service_account_info
        except ValueError as e:
            verifier = cls()
            verifier._initialization_error = str(e)
            return verifier
        return cls(service_account_info=info)

    def initialize(self) -> None:
        """Load the service account and open the key-fetching transport."""
        if self._initialized:
            return
        if self._initialization_error:
            self.logger.warning(
                "Firebase verifier disabled", error=self._initialization_error
            )
            return
        if not self._service_account_info and not self._project_id:
            self._initialization_error = "FIREBASE_SERVICE_ACCOUNT is not set"
            self.logger.warning(
                "Firebase verifier disabled", error=self._initialization_error
            )
            return

        try:
            if self._service_account_info:
                self._credentials = (
                    service_account.Credentials.from_service_account_info(
                        self._service_account_info
                    )
                )
                self._project_id = self._project_id or self._credentials.project_id
            if not self._project_id:
                raise ValueError("service account has no project_id")
        except (ValueError, KeyError) as e:
            self._initialization_error = f"Invalid Firebase service account: {e}"
            self.logger.error(
                "Firebase verifier initialization failed",
                error=self._initialization_error,
            )
            return

        self._request = auth_requests.Request()
        self._initialized = True
        self.logger.info("Firebase verifier initialized", project_id=self._project_id)

    def close(self) -> None:
        if self._request is not None:
            self._request.session.close()
            self._request = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def initialization_error(self) -> Optional[str]:
        return self._initialization_error

    @property
    def project_id(self) -> Optional[str]:
        return self._project_id

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            error_msg = "Identity verification is not configured"
            if self._initialization_error:
                error_msg += f": {self._initialization_error}"
            raise ConfigurationError(error_msg)

    def _verify_sync(self, token: str) -> Dict[str, Any]:
        return id_token.verify_firebase_token(
            token,
            self._request,
            audience=self._project_id,
            clock_skew_in_seconds=self._clock_skew_seconds,
        )

    async def verify(self, token: str) -> IdentityClaim:
        """
        Verify a Firebase ID token.

        Args:
            token: Raw ID token taken from the Authorization header

        Returns:
            IdentityClaim of the token subject

        Raises:
            TokenInvalidError: If the token fails verification
            ConfigurationError: If the verifier is disabled
        """
        self._ensure_initialized()

        try:
            claims = await run_in_threadpool(self._verify_sync, token)
        except (ValueError, GoogleAuthError) as e:
            self.logger.warning("Token verification failed", error=str(e))
            raise TokenInvalidError(str(e)) from e

        if not claims or not (claims.get("sub") or claims.get("user_id")):
            raise TokenInvalidError("token has no subject")

        claim = IdentityClaim.from_token_claims(claims)

        self.logger.info("Token verified", uid=claim.uid)
        return claim
