"""Explicit per-session context: authentication state and storage wiring."""

import json
import logging
from typing import Callable, Optional

from shared.config import get_auth_config, get_remote_storage_config
from shared.credentials import PasswordVerifier
from shared.errors import AuthFailure, LockoutActive
from shared.kv_store import KeyValueStore
from shared.models import SiteUser
from services.auth.lockout import LockoutGuard, LoginStatus
from services.storage.adapter import StorageFallbackAdapter
from services.storage.remote_client import RemoteStorageClient
from services.storage.strategy import RemoteThenLocal

logger = logging.getLogger(__name__)

USER_KEY = "user"
DEFAULT_USER_NAME = "site owner"


class SessionContext:
    """
    Per-session state: who is logged in, the remote connection and the
    storage adapter.

    Created at app start; the storage wiring exists only between a
    successful login (or restore) and logout.
    """

    def __init__(
        self,
        local_store: KeyValueStore,
        guard: LockoutGuard,
        remote_client_factory: Callable[[], Optional[RemoteStorageClient]] = RemoteStorageClient.from_env,
        strategy: Optional[RemoteThenLocal] = None,
        user_name: str = DEFAULT_USER_NAME
    ):
        self.local_store = local_store
        self.guard = guard
        self.remote_client_factory = remote_client_factory
        self.strategy = strategy
        self.user_name = user_name
        self.user: Optional[SiteUser] = None
        self.remote_client: Optional[RemoteStorageClient] = None
        self._adapter: Optional[StorageFallbackAdapter] = None

    @classmethod
    def from_env(cls, local_store: KeyValueStore) -> "SessionContext":
        """Build a session from SITE_PASSWORD_* and REMOTE_STORAGE_* settings."""
        auth = get_auth_config()
        remote = get_remote_storage_config()
        guard = LockoutGuard(
            local_store,
            PasswordVerifier(auth["password_hash"], auth["password_salt"]),
            max_failed_attempts=auth["max_failed_attempts"],
            lockout_seconds=auth["lockout_seconds"]
        )
        strategy = RemoteThenLocal(timeout=remote["timeout"], upload_timeout=remote["upload_timeout"])
        return cls(local_store, guard, strategy=strategy)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def adapter(self) -> StorageFallbackAdapter:
        if self._adapter is None:
            raise RuntimeError("Session is not logged in")
        return self._adapter

    def _open(self, user: SiteUser):
        self.user = user
        if self._adapter is not None:
            logger.info("Session already open, keeping the current storage connection")
            return
        self.remote_client = self.remote_client_factory()
        self._adapter = StorageFallbackAdapter(
            self.local_store,
            remote_client=self.remote_client,
            strategy=self.strategy
        )

    def restore(self) -> bool:
        """Resume a previous login found in the local store."""
        raw = self.local_store.get_item(USER_KEY)
        if not raw:
            return False
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Ignoring unreadable user record")
            return False
        if not isinstance(data, dict) or not data.get("isLoggedIn"):
            return False

        self._open(SiteUser(name=data.get("name", self.user_name), email=data.get("email")))
        logger.info(f"Restored session for {self.user.name}")
        return True

    def login(self, password: str) -> SiteUser:
        """
        Log in with the shared password.

        Raises:
            LockoutActive: While locked out; the password is not checked
            AuthFailure: If the password is wrong
        """
        result = self.guard.attempt(password)
        if result.status is LoginStatus.LOCKED:
            raise LockoutActive(result.lockout_remaining_seconds)
        if result.status is LoginStatus.REJECTED:
            raise AuthFailure(result.remaining_attempts)

        user = SiteUser(name=self.user_name)
        self.local_store.set_item(USER_KEY, json.dumps({"name": user.name, "isLoggedIn": True}))
        self._open(user)
        return user

    async def logout(self):
        """Tear down storage wiring. The login attempt record is kept."""
        if self.remote_client is not None:
            await self.remote_client.aclose()
        self.remote_client = None
        self._adapter = None
        self.user = None
        self.local_store.remove_item(USER_KEY)
        logger.info("Logged out")
