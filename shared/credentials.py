"""Password hashing for the shared site password."""

import base64
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from shared.config import get_auth_config


SCRYPT_LENGTH = 32
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1


def _kdf(salt: bytes) -> Scrypt:
    return Scrypt(salt=salt, length=SCRYPT_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)


def hash_password(password: str, salt: Optional[bytes] = None) -> Tuple[str, str]:
    """
    Derive a scrypt hash for a password.

    Args:
        password: The plaintext password
        salt: Optional salt. A random 16-byte salt is generated if omitted.

    Returns:
        Tuple of (base64 hash, base64 salt)
    """
    salt = salt or os.urandom(16)
    derived = _kdf(salt).derive(password.encode())
    return base64.b64encode(derived).decode(), base64.b64encode(salt).decode()


class PasswordVerifier:
    """Checks candidate passwords against a stored scrypt hash."""

    def __init__(self, password_hash: Optional[str] = None, password_salt: Optional[str] = None):
        """
        Initialize the verifier.

        Args:
            password_hash: Base64 scrypt hash. Loaded from SITE_PASSWORD_HASH if omitted.
            password_salt: Base64 salt. Loaded from SITE_PASSWORD_SALT if omitted.
        """
        if password_hash is None or password_salt is None:
            config = get_auth_config()
            password_hash = password_hash or config["password_hash"]
            password_salt = password_salt or config["password_salt"]

        if not password_hash or not password_salt:
            raise ValueError("SITE_PASSWORD_HASH and SITE_PASSWORD_SALT must be set")

        self.password_hash = base64.b64decode(password_hash)
        self.salt = base64.b64decode(password_salt)

    def verify(self, password: str) -> bool:
        """Return True if password matches the stored hash."""
        if not password:
            return False
        try:
            _kdf(self.salt).verify(password.encode(), self.password_hash)
            return True
        except InvalidKey:
            return False

    @classmethod
    def from_plaintext(cls, password: str) -> "PasswordVerifier":
        """Build a verifier for a known password (development and tests)."""
        password_hash, salt = hash_password(password)
        return cls(password_hash=password_hash, password_salt=salt)
