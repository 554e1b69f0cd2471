import asyncio
import json
import logging
from typing import Optional

from passlib.context import CryptContext
from pydantic import ValidationError

from timetracker.auth import verify_password
from timetracker.config import settings
from timetracker.constants.tables import Table
from timetracker.schemas.store import Filter, ServiceResult, StoreError
from timetracker.schemas.user import User
from timetracker.store.base import RemoteStoreClient
from timetracker.store.keyvalue import KeyValueStore

log = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid login credentials."


class SessionManager:
    """
    Holds the signed-in principal and persists it in a local key-value store.

    Only `{id, username}` is persisted; the full user row is re-fetched from
    the remote store when a session is restored.
    """

    def __init__(
        self,
        store: RemoteStoreClient,
        kv_store: KeyValueStore,
        session_key: Optional[str] = None,
        pwd_context: Optional[CryptContext] = None,
    ):
        self.store = store
        self.kv_store = kv_store
        self.session_key = session_key or settings.session_key
        self.pwd_context = pwd_context
        self._current_user: Optional[User] = None

    @property
    def current_user(self) -> Optional[User]:
        return self._current_user

    def _persist(self, user: User) -> None:
        self.kv_store.set(self.session_key, json.dumps({"id": user.id, "username": user.username}))

    def _clear_persisted(self) -> None:
        self.kv_store.remove(self.session_key)

    async def _fetch_user(self, column: str, value) -> Optional[User]:
        result = await self.store.fetch_rows(Table.USERS, filters=[Filter(column=column, value=value)], limit=1)
        if result.error:
            log.warning(f"Could not fetch user by {column}: {result.error.message}")
            return None
        if not result.rows:
            return None
        return User.model_validate(result.rows[0])

    async def restore_session(self) -> Optional[User]:
        """Return the current principal, re-validating a persisted one against the store."""
        if self._current_user:
            return self._current_user

        stored = self.kv_store.get(self.session_key)
        if not stored:
            return None

        try:
            record = json.loads(stored)
            user = await self._fetch_user("id", record["id"])
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            log.warning(f"Stored session record is unreadable: {e}")
            user = None

        if user is None:
            self._clear_persisted()
            log.info("Stored session invalid, cleared")
            return None

        self._current_user = user
        log.info(f"Session restored for: {user.name or user.username}")
        return user

    async def get_user(self, user_id) -> Optional[User]:
        try:
            return await self._fetch_user("id", user_id)
        except ValidationError as e:
            log.error(f"User row {user_id} is malformed: {e}")
            return None

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """
        Check credentials without touching the session. bcrypt runs in a worker
        thread so the event loop keeps serving other requests.
        """
        try:
            user = await self._fetch_user("username", username)
        except ValidationError as e:
            log.error(f"User row for {username} is malformed: {e}")
            return None

        if user is None or not await asyncio.to_thread(verify_password, password, user.password_hash, self.pwd_context):
            log.info(f"Failed sign-in for {username}")
            return None
        return user

    async def sign_in(self, username: str, password: str) -> ServiceResult:
        user = await self.authenticate(username, password)
        if user is None:
            return ServiceResult(error=StoreError(message=INVALID_CREDENTIALS))

        self._current_user = user
        self._persist(user)
        log.info(f"Signed in: {user.username}")
        return ServiceResult(data=user)

    def sign_out(self) -> ServiceResult:
        """Forget the principal in memory and on disk; never leaves a session behind."""
        previous = self._current_user
        self._current_user = None
        try:
            self._clear_persisted()
        except OSError as e:
            log.error(f"Could not clear persisted session: {e}")
            return ServiceResult(error=StoreError(message=str(e)))
        log.info(f"Signed out: {previous.username if previous else 'no active session'}")
        return ServiceResult()
