"""Shared configuration utilities."""

import os
from typing import Optional


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> str:
    """Get environment variable with optional default and required validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value


def get_database_url() -> str:
    """Get the server-side KV database URL from environment."""
    return get_env(
        "DATABASE_URL",
        "sqlite:///homebase_server.db",
        required=False
    )


def get_local_store_url() -> str:
    """Get the local persistent store URL from environment."""
    return get_env("LOCAL_STORE_URL", "sqlite:///homebase_local.db")


def get_local_quota_bytes() -> int:
    """Get the assumed local storage quota in bytes."""
    return int(get_env("LOCAL_STORE_QUOTA_BYTES", str(10 * 1024 * 1024)))


def get_remote_storage_config() -> dict:
    """Get remote key-value storage configuration from environment."""
    base_url = get_env("REMOTE_STORAGE_URL")
    return {
        "base_url": base_url,
        "api_key": get_env("REMOTE_STORAGE_API_KEY", ""),
        "timeout": float(get_env("REMOTE_STORAGE_TIMEOUT", "60")),
        "upload_timeout": float(get_env("REMOTE_UPLOAD_TIMEOUT", "120")),
        "enabled": bool(base_url),
    }


def get_auth_config() -> dict:
    """Get shared-password authentication configuration from environment."""
    return {
        "password_hash": get_env("SITE_PASSWORD_HASH"),
        "password_salt": get_env("SITE_PASSWORD_SALT"),
        "max_failed_attempts": int(get_env("MAX_FAILED_ATTEMPTS", "5")),
        "lockout_seconds": int(get_env("LOCKOUT_SECONDS", str(30 * 60))),
    }


def get_aws_config() -> dict:
    """Get AWS configuration for the optional S3 image backend."""
    return {
        "region": get_env("AWS_REGION", "us-east-1"),
        "s3_bucket": get_env("AWS_S3_BUCKET"),
        "access_key_id": get_env("AWS_ACCESS_KEY_ID"),
        "secret_access_key": get_env("AWS_SECRET_ACCESS_KEY"),
    }


def get_api_keys() -> set:
    """
    Get accepted bearer credentials for the KV server.

    Supports a comma-separated list in the API_KEYS environment variable.
    Falls back to a development key when unset.
    """
    api_keys_str = get_env("API_KEYS", "dev-api-key-12345")
    return set(key.strip() for key in api_keys_str.split(",") if key.strip())
