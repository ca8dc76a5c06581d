from __future__ import annotations

import dataclasses
from typing import Callable, Optional

import aiosqlite

from api.auth import AuthClient
from db.models import Session, SessionStatus, UserProfile
from db.store import SessionStore
from state.observable import Listener, Observable
from utils.errors import AuthenticationFailed, RemoteOperationFailed, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)


class SessionManager:
    """
    Owns the authentication state of the app.

    Fields (read-only from outside):
      - status: where the session is in its lifecycle
      - token: bearer token for the backend, None unless signed in
      - user: profile of the signed-in user

    The persisted copy in SessionStore is a cache only; the server's verify
    answer decides whether a restored session is kept. Listeners registered
    with subscribe() receive a Session snapshot after every change.
    """

    def __init__(self, auth: AuthClient, store: SessionStore) -> None:
        self._auth = auth
        self._store = store

        self._status = SessionStatus.AUTHENTICATING
        self._token: Optional[str] = None
        self._user: Optional[UserProfile] = None

        # bumped by sign_out/mark_expired; in-flight calls that see a
        # different value on resume must not touch the session
        self._epoch = 0
        self._changes: Observable[Session] = Observable()

    # ---------------------------
    # Read access
    # ---------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[UserProfile]:
        return self._user

    @property
    def session(self) -> Session:
        return Session(status=self._status, token=self._token, user=self._user)

    @property
    def is_authenticated(self) -> bool:
        return self.session.is_authenticated

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._changes.subscribe(listener)

    # ---------------------------
    # Lifecycle
    # ---------------------------

    async def restore_session(self) -> Session:
        """
        Bring back the persisted session if the server still accepts it.
        Never raises: every failure ends in UNAUTHENTICATED with storage purged.
        """
        epoch = self._epoch
        await self._set(SessionStatus.AUTHENTICATING, None, None)

        try:
            persisted = await self._store.load()
        except aiosqlite.Error as e:
            _logger.error(f"Could not read persisted session: {e!r}")
            persisted = None
            await self._purge()

        if persisted is None:
            _logger.info("No saved session found.")
            await self._set(SessionStatus.UNAUTHENTICATED, None, None)
            return self.session

        token, cached_user = persisted
        try:
            # the server's record wins, role or profile may have changed
            user = await self._auth.verify(token)
            if epoch != self._epoch:
                return self.session
            await self._store.save(token, user)
        except (RemoteOperationFailed, aiosqlite.Error) as e:
            _logger.info(f"Saved session for {cached_user.email} rejected: {e}")
            if epoch == self._epoch:
                await self._purge()
                await self._set(SessionStatus.UNAUTHENTICATED, None, None)
            return self.session

        _logger.info(f"Session restored for {user.email} ({user.role}).")
        await self._set(SessionStatus.AUTHENTICATED, token, user)
        return self.session

    async def authenticate(self, credential: str) -> UserProfile:
        """
        Exchange a Google credential for a session.
        Raises AuthenticationFailed on any failure, after purging storage.
        """
        credential = (credential or "").strip()
        if not credential:
            raise ValidationError("Credential cannot be empty.")

        epoch = self._epoch
        await self._set(SessionStatus.AUTHENTICATING, None, None)
        try:
            token, user = await self._auth.exchange(credential)
            await self._store.save(token, user)
        except (RemoteOperationFailed, aiosqlite.Error) as e:
            _logger.warning(f"Login failed: {e}")
            if epoch == self._epoch:
                await self._purge()
                await self._set(SessionStatus.UNAUTHENTICATED, None, None)
            message = getattr(e, "message", None) or str(e)
            raise AuthenticationFailed(message) from e

        if epoch != self._epoch:
            # signed out while the exchange was running
            await self._purge()
            raise AuthenticationFailed("Login was cancelled.")

        _logger.info(f"Authenticated {user.email} ({user.role}).")
        await self._set(SessionStatus.AUTHENTICATED, token, user)
        if epoch != self._epoch:
            # ended while listeners ran, e.g. the cart fetch got a 401
            if self._status == SessionStatus.EXPIRED:
                raise AuthenticationFailed("Your session has expired. Please login again.")
            raise AuthenticationFailed("Login was cancelled.")
        return user

    async def refresh(self) -> bool:
        """
        Trade the current token for a fresh one.
        Returns False without a call when not AUTHENTICATED; on failure signs out.
        """
        if self._status != SessionStatus.AUTHENTICATED or not self._token:
            return False

        epoch = self._epoch
        user = self._user
        await self._set(SessionStatus.REFRESHING, self._token, user)
        try:
            new_token = await self._auth.refresh(self._token)
            if epoch != self._epoch:
                return False
            await self._store.save(new_token, user)
        except (RemoteOperationFailed, aiosqlite.Error) as e:
            _logger.warning(f"Token refresh failed, signing out: {e}")
            if epoch == self._epoch:
                await self.sign_out()
            return False

        if epoch != self._epoch:
            await self._purge()
            return False

        _logger.info("Token refreshed.")
        await self._set(SessionStatus.AUTHENTICATED, new_token, user)
        return True

    async def sign_out(self) -> None:
        """Always ends UNAUTHENTICATED; the remote logout is best-effort."""
        token = self._token
        self._epoch += 1

        if token:
            try:
                await self._auth.logout(token)
            except RemoteOperationFailed as e:
                _logger.warning(f"Backend logout failed, continuing locally: {e}")

        await self._purge()
        await self._set(SessionStatus.UNAUTHENTICATED, None, None)
        _logger.info("Signed out.")

    async def mark_expired(self) -> None:
        """Called when the backend rejects the token outside of verify/refresh."""
        if not self.is_authenticated:
            return
        _logger.info("Session expired.")
        self._epoch += 1
        await self._purge()
        await self._set(SessionStatus.EXPIRED, None, None)

    async def update_profile(self, **changes) -> Optional[UserProfile]:
        """
        Merge changes into the cached user and persist them.
        Local only, the server record is picked up on the next verify.
        """
        if self._user is None or not self._token:
            _logger.warning("Profile update ignored, nobody is signed in.")
            return None
        if "id" in changes:
            raise ValidationError("User id cannot be changed.")
        try:
            updated = dataclasses.replace(self._user, **changes)
        except TypeError as e:
            raise ValidationError(f"Unknown profile field: {e}") from e

        await self._store.save(self._token, updated)
        await self._set(self._status, self._token, updated)
        return updated

    # ---------------------------
    # Internals
    # ---------------------------

    async def _purge(self) -> None:
        try:
            await self._store.clear()
        except aiosqlite.Error as e:
            _logger.error(f"Could not purge persisted session: {e!r}")

    async def _set(
        self,
        status: SessionStatus,
        token: Optional[str],
        user: Optional[UserProfile],
    ) -> None:
        if (status, token, user) == (self._status, self._token, self._user):
            return
        if status != self._status:
            _logger.debug(f"Session {self._status.value} -> {status.value}")
        self._status = status
        self._token = token
        self._user = user
        await self._changes.emit(self.session)
