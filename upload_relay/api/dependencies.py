"""FastAPI dependencies.

Provides:
- Access to the process-wide collaborators created in the lifespan
- get_identity dependency for protected endpoints
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from upload_relay.core.exceptions import AuthenticationError, ConfigurationError
from upload_relay.core.identity import FirebaseTokenVerifier
from upload_relay.core.logging import get_auth_logger
from upload_relay.models.schemas import IdentityClaim
from upload_relay.services.upload_service import UploadService

logger = get_auth_logger()

# Missing credentials are reported by get_identity, not by HTTPBearer
security = HTTPBearer(auto_error=False)


def get_token_verifier(request: Request) -> FirebaseTokenVerifier:
    verifier = getattr(request.app.state, "token_verifier", None)
    if verifier is None:
        raise ConfigurationError("Identity verifier is not available")
    return verifier


def get_upload_service(request: Request) -> UploadService:
    service = getattr(request.app.state, "upload_service", None)
    if service is None:
        raise ConfigurationError("Upload service is not available")
    return service


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: FirebaseTokenVerifier = Depends(get_token_verifier),
) -> IdentityClaim:
    """
    Resolve the caller's identity from the Authorization header.

    Raises:
        AuthenticationError: If the header is missing or not a bearer token
        TokenInvalidError: If the token fails verification
    """
    logger.info("Auth header", present=credentials is not None)

    if credentials is None or not credentials.credentials.strip():
        raise AuthenticationError()

    return await verifier.verify(credentials.credentials.strip())
