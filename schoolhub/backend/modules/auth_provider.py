# schoolhub/backend/modules/auth_provider.py

import httpx
import logging
from typing import Dict, Any, Optional
from uuid import UUID

logger = logging.getLogger(__name__)

# Custom exceptions for clearer error handling
class AuthProviderError(Exception):
    """Raised when the auth provider cannot be reached or answers unexpectedly."""
    pass

class AuthProviderAuthError(AuthProviderError):
    """Raised when the provider rejects a token or credentials."""
    pass


class AuthProviderClient:
    """
    Client for the hosted auth provider (Supabase GoTrue REST API).
    The HTTP client is injected so one connection pool is shared for the
    lifetime of the process.
    """

    def __init__(self, base_url: str, service_key: str, http_client: httpx.AsyncClient):
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._client = http_client

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self._service_key,
            "Authorization": f"Bearer {bearer or self._service_key}",
        }

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        """
        Resolves an access token to the provider's user object.
        Raises AuthProviderAuthError when the token is invalid or expired.
        """
        if not access_token:
            raise AuthProviderAuthError("Empty access token.")
        try:
            response = await self._client.get(
                f"{self._base_url}/auth/v1/user",
                headers=self._headers(bearer=access_token),
            )
        except httpx.RequestError as e:
            logger.error(f"Network error while contacting the auth provider: {e}", exc_info=True)
            raise AuthProviderError("The auth provider could not be reached.") from e

        if response.status_code in (401, 403):
            logger.warning("Auth provider rejected an access token.")
            raise AuthProviderAuthError("Invalid or expired access token.")
        if response.status_code != 200:
            logger.error(f"Unexpected auth provider response {response.status_code}: {response.text}")
            raise AuthProviderError(f"Auth provider returned status {response.status_code}.")

        user = response.json()
        if not user or not user.get("id"):
            raise AuthProviderAuthError("Access token did not resolve to a user.")
        return user

    async def create_user(self, email: str, password: str, user_metadata: Dict[str, Any]) -> Dict[str, Any]:
        """Creates a confirmed account through the admin API (requires the service role key)."""
        payload = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": user_metadata,
        }
        try:
            response = await self._client.post(
                f"{self._base_url}/auth/v1/admin/users",
                headers=self._headers(),
                json=payload,
            )
        except httpx.RequestError as e:
            logger.error(f"Network error while creating auth user '{email}': {e}", exc_info=True)
            raise AuthProviderError("The auth provider could not be reached.") from e

        if response.status_code not in (200, 201):
            message = _error_message(response)
            logger.warning(f"Auth provider refused to create user '{email}': {message}")
            raise AuthProviderError(message)

        user = response.json()
        if not user.get("id"):
            raise AuthProviderError("Failed to create auth user")
        logger.info(f"Auth user created for '{email}'.")
        return user

    async def delete_user(self, user_id: UUID) -> None:
        """Deletes an account through the admin API."""
        try:
            response = await self._client.delete(
                f"{self._base_url}/auth/v1/admin/users/{user_id}",
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            logger.error(f"Network error while deleting auth user {user_id}: {e}", exc_info=True)
            raise AuthProviderError("The auth provider could not be reached.") from e

        if response.status_code not in (200, 204):
            raise AuthProviderError(_error_message(response))


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"Auth provider returned status {response.status_code}."
    for key in ("msg", "message", "error_description", "error"):
        if isinstance(body, dict) and body.get(key):
            return str(body[key])
    return f"Auth provider returned status {response.status_code}."
