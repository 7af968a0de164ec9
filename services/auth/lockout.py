"""Failed-login counter with a timed lockout."""

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from shared.kv_store import KeyValueStore
from shared.models import LoginAttemptRecord

logger = logging.getLogger(__name__)

LOGIN_ATTEMPTS_KEY = "loginAttempts"
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_SECONDS = 30 * 60


class LoginStatus(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"
    LOCKED = "locked"


@dataclass
class LoginResult:
    """Outcome of one login attempt."""
    status: LoginStatus
    remaining_attempts: int
    lockout_remaining_seconds: float = 0.0


class LockoutGuard:
    """
    Tracks failed password checks and enforces a timed lockout.

    States are Unlocked(count) and Locked(until). Reaching the failure
    threshold locks for lockout_seconds; while locked the password is never
    consulted. Expiry unlocks without resetting the counter, so the next
    failure locks again. Only a successful login clears the persisted record.
    """

    def __init__(
        self,
        store: KeyValueStore,
        verifier,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        lockout_seconds: int = LOCKOUT_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the guard and restore any lockout still in effect.

        Args:
            store: Local store holding the attempt record
            verifier: Object with verify(password) -> bool
            max_failed_attempts: Failures that trigger the lockout
            lockout_seconds: Lockout length
            clock: Returns the current time in epoch seconds
        """
        self.store = store
        self.verifier = verifier
        self.max_failed_attempts = max_failed_attempts
        self.lockout_seconds = lockout_seconds
        self.clock = clock
        self.record = self._load_record()
        self.locked_until: Optional[float] = None

        if self.record.count >= self.max_failed_attempts:
            last_failed = self.record.last_failed_at / 1000
            if self.clock() - last_failed < self.lockout_seconds:
                self.locked_until = last_failed + self.lockout_seconds
                logger.warning(
                    f"Restored lockout, {self.remaining_seconds():.0f}s remaining"
                )

    def _load_record(self) -> LoginAttemptRecord:
        raw = self.store.get_item(LOGIN_ATTEMPTS_KEY)
        if not raw:
            return LoginAttemptRecord()
        try:
            return LoginAttemptRecord.from_dict(json.loads(raw))
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Ignoring unreadable login attempt record: {e}")
            return LoginAttemptRecord()

    @property
    def attempt_count(self) -> int:
        return self.record.count

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_failed_attempts - self.record.count)

    def remaining_seconds(self) -> float:
        if self.locked_until is None:
            return 0.0
        return max(0.0, self.locked_until - self.clock())

    def tick(self) -> float:
        """
        Advance the lockout countdown; called once per second by the UI.

        Returns:
            Seconds of lockout remaining (0 when unlocked)
        """
        remaining = self.remaining_seconds()
        if self.locked_until is not None and remaining <= 0:
            self.locked_until = None
            logger.info(f"Lockout expired, attempt count stays at {self.record.count}")
        return remaining

    @property
    def is_locked(self) -> bool:
        return self.tick() > 0

    def attempt(self, password: str) -> LoginResult:
        """
        Check a password unless locked out.

        Returns:
            LoginResult with status SUCCESS, REJECTED or LOCKED
        """
        if self.is_locked:
            return LoginResult(
                status=LoginStatus.LOCKED,
                remaining_attempts=0,
                lockout_remaining_seconds=self.remaining_seconds()
            )

        if self.verifier.verify(password):
            self.record = LoginAttemptRecord()
            self.locked_until = None
            self.store.remove_item(LOGIN_ATTEMPTS_KEY)
            logger.info("Login succeeded, attempt counter reset")
            return LoginResult(status=LoginStatus.SUCCESS, remaining_attempts=self.max_failed_attempts)

        now = self.clock()
        self.record = LoginAttemptRecord(count=self.record.count + 1, last_failed_at=int(now * 1000))
        self.store.set_item(LOGIN_ATTEMPTS_KEY, json.dumps(self.record.to_dict()))

        if self.record.count >= self.max_failed_attempts:
            self.locked_until = now + self.lockout_seconds
            logger.warning(
                f"{self.record.count} failed login attempts, locked for {self.lockout_seconds // 60} minutes"
            )
            return LoginResult(
                status=LoginStatus.LOCKED,
                remaining_attempts=0,
                lockout_remaining_seconds=float(self.lockout_seconds)
            )

        logger.warning(f"Failed login attempt ({self.remaining_attempts} remaining)")
        return LoginResult(status=LoginStatus.REJECTED, remaining_attempts=self.remaining_attempts)
