"""Identity service client: resolves bearer tokens to users."""
import logging
from typing import Any, Dict, Optional

import httpx

from config import SUPABASE_ANON_KEY, SUPABASE_URL
from errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


class IdentityServiceClient:
    """Client for the backend's auth API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = SUPABASE_URL,
        anon_key: str = SUPABASE_ANON_KEY
    ):
        """
        Initialize identity client.

        Args:
            http_client: Async HTTP client
            base_url: Backend base URL
            anon_key: Public API key sent as ``apikey``
        """
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key

    async def get_user(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Resolve a JWT to the user it was issued for.

        Args:
            token: Bearer token from the request

        Returns:
            User record (at least ``id``), or None if the token is rejected

        Raises:
            ServiceUnavailableError: If the auth API cannot be reached or errors
        """
        # HTTPXClientInstrumentor already creates spans for HTTP calls
        try:
            response = await self.http_client.get(
                f"{self.base_url}/auth/v1/user",
                headers={
                    "apikey": self.anon_key,
                    "Authorization": f"Bearer {token}"
                }
            )
        except httpx.HTTPError as e:
            logger.error("Identity service unreachable", extra={"error": str(e)})
            raise ServiceUnavailableError("Identity service unavailable") from e

        if response.status_code in (401, 403):
            return None

        if response.status_code >= 500:
            logger.error("Identity service returned server error", extra={
                "status_code": response.status_code
            })
            raise ServiceUnavailableError("Identity service unavailable")

        if response.status_code != 200:
            logger.warning("Identity service returned unexpected status", extra={
                "status_code": response.status_code
            })
            return None

        user = response.json()
        if not isinstance(user, dict) or not user.get("id"):
            return None
        return user
