# src/db/store.py
from __future__ import annotations

import json
from typing import Optional, Tuple

from db.database import connect
from db.models import UserProfile
from utils.logger import get_logger

_logger = get_logger(__name__)


class SessionStore:
    """
    Durable copy of the last known session: the token and the user profile.

    The two records are always written together and purged together, in one
    transaction, so a token never exists without its user and vice versa.
    Nothing else in the app reads or writes the kv table.
    """

    def __init__(self, namespace: str = "ssecom") -> None:
        self.token_key = f"{namespace}_token"
        self.user_key = f"{namespace}_user"

    async def load(self) -> Optional[Tuple[str, UserProfile]]:
        """Return (token, user) or None.

        A half-present or unreadable pair is purged and reported as None.
        """
        async with connect() as conn:
            cur = await conn.execute(
                "SELECT key, value FROM kv WHERE key IN (?, ?);",
                (self.token_key, self.user_key),
            )
            rows = await cur.fetchall()
            await cur.close()

        values = {row[0]: row[1] for row in rows}
        token = values.get(self.token_key)
        raw_user = values.get(self.user_key)

        if token is None and raw_user is None:
            return None
        if not token or raw_user is None:
            _logger.warning("Persisted session is incomplete, purging it.")
            await self.clear()
            return None

        try:
            user = UserProfile.from_dict(json.loads(raw_user))
        except (json.JSONDecodeError, ValueError, TypeError) as e:
            _logger.warning(f"Persisted user is unreadable ({e}), purging session.")
            await self.clear()
            return None
        return token, user

    async def save(self, token: str, user: UserProfile) -> None:
        """Write token and user as one unit."""
        if not token:
            raise ValueError("token cannot be empty")
        async with connect() as conn:
            await conn.executemany(
                "INSERT OR REPLACE INTO kv(key, value) VALUES (?, ?);",
                [
                    (self.token_key, token),
                    (self.user_key, json.dumps(user.to_dict())),
                ],
            )
            await conn.commit()

    async def clear(self) -> None:
        async with connect() as conn:
            await conn.execute(
                "DELETE FROM kv WHERE key IN (?, ?);",
                (self.token_key, self.user_key),
            )
            await conn.commit()
