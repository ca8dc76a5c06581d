from typing import Tuple

from api.client import ApiClient
from db.models import UserProfile
from utils.errors import RemoteOperationFailed


def _parse_user(data: dict) -> UserProfile:
    try:
        return UserProfile.from_dict(data.get("user"))
    except ValueError as e:
        raise RemoteOperationFailed(f"Malformed user in response: {e}") from e


def _parse_token(data: dict) -> str:
    token = data.get("token")
    if not isinstance(token, str) or not token:
        raise RemoteOperationFailed("Malformed response: token missing")
    return token


class AuthClient:
    """
    Maps the session operations onto /api/auth/*.
    """

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def exchange(self, credential: str) -> Tuple[str, UserProfile]:
        """Trade a Google ID-token credential for (session token, user)."""
        data = await self._api.request(
            "POST", "/api/auth/google", json={"credential": credential}
        )
        return _parse_token(data), _parse_user(data)

    async def verify(self, token: str) -> UserProfile:
        """Return the user the server currently associates with token."""
        data = await self._api.request("GET", "/api/auth/verify", token=token)
        return _parse_user(data)

    async def refresh(self, token: str) -> str:
        data = await self._api.request("POST", "/api/auth/refresh", token=token)
        return _parse_token(data)

    async def logout(self, token: str) -> None:
        await self._api.request("POST", "/api/auth/logout", token=token)
