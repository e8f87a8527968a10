"""Resolution of usernames, emails and ids to platform users."""

import logging
from typing import Optional

from symbridge.platforms.client import SymphonyClient
from symbridge.platforms.models import SymphonyUser

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves user references to ``SymphonyUser`` records.

    Username, email and id are alternate keys for the same record. Lookups
    are single-shot; errors from the client propagate to the caller. Hits
    are cached for the lifetime of one run and dropped by ``clear()``.
    """

    def __init__(self, client: SymphonyClient):
        self._client = client
        self._by_id: dict[int, SymphonyUser] = {}
        self._by_email: dict[str, SymphonyUser] = {}
        self._by_username: dict[str, SymphonyUser] = {}

    def _remember(self, user: SymphonyUser) -> SymphonyUser:
        self._by_id[user.id] = user
        if user.email_address:
            self._by_email[user.email_address.lower()] = user
        if user.username:
            self._by_username[user.username.lower()] = user
        return user

    async def resolve_by_id(self, user_id: int) -> SymphonyUser:
        user_id = int(user_id)
        cached = self._by_id.get(user_id)
        if cached is not None:
            return cached
        logger.debug(f"Looking up user by id {user_id}")
        return self._remember(await self._client.get_user(user_id=user_id))

    async def resolve_by_email(self, email: str) -> SymphonyUser:
        cached = self._by_email.get(email.lower())
        if cached is not None:
            return cached
        logger.debug(f"Looking up user by email {email}")
        return self._remember(await self._client.get_user(email=email))

    async def resolve_by_username(self, username: str) -> SymphonyUser:
        cached = self._by_username.get(username.lower())
        if cached is not None:
            return cached
        logger.debug(f"Looking up user by username {username}")
        return self._remember(await self._client.get_user(username=username))

    async def resolve(
        self,
        user_id: Optional[int] = None,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> SymphonyUser:
        """Resolve using whichever key is given, preferring id, then email."""
        if user_id is not None:
            return await self.resolve_by_id(user_id)
        if email is not None:
            return await self.resolve_by_email(email)
        if username is not None:
            return await self.resolve_by_username(username)
        raise ValueError("One of user_id, email or username is required")

    def clear(self) -> None:
        """Forget every cached user."""
        self._by_id.clear()
        self._by_email.clear()
        self._by_username.clear()
