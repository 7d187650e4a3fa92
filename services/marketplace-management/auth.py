"""Authentication dependency."""
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Header

from dependencies import get_identity_client
from errors import AuthenticationError
from monitoring import auth_failures_counter
from services.identity_service import IdentityServiceClient

logger = logging.getLogger(__name__)

UNAUTHENTICATED_MESSAGE = "Usuário não autenticado"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of a ``Bearer <token>`` header, or None."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


async def get_current_user(
    authorization: Optional[str] = Header(None),
    identity: IdentityServiceClient = Depends(get_identity_client)
) -> Dict[str, Any]:
    """
    Resolve the caller through the identity service.

    Returns:
        User record with at least ``id``

    Raises:
        AuthenticationError: If the header is missing or the token is rejected
        ServiceUnavailableError: If the identity service cannot be reached
    """
    if authorization is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing authorization header")
        raise AuthenticationError(UNAUTHENTICATED_MESSAGE)

    token = extract_bearer_token(authorization)
    if token is None:
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid authorization header format", extra={
            "auth_header": authorization[:20] + "..." if len(authorization) > 20 else authorization
        })
        raise AuthenticationError(UNAUTHENTICATED_MESSAGE)

    user = await identity.get_user(token)
    if user is None:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..." if len(token) > 8 else token
        })
        raise AuthenticationError(UNAUTHENTICATED_MESSAGE)

    logger.debug("Authentication successful", extra={"user_id": user["id"]})
    return user
