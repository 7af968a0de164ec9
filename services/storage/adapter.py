"""Storage fallback adapter: remote first when requested, local persistent store otherwise."""

import asyncio
import json
import logging
import time
import uuid
from typing import Any, List, Optional

from shared.errors import (
    LocalQuotaExceeded,
    MalformedDocument,
    NetworkFailure,
    OversizeInput,
)
from shared.kv_store import KeyValueStore, entry_size
from shared.models import ImageAsset, Medium, StorageResult
from shared.schemas import validate_document
from services.storage.capacity import (
    ASSET_KEY_PREFIX,
    ASSUMED_QUOTA_BYTES,
    LocalCapacityManager,
)
from services.storage.image_codec import ImageCodec, to_data_url
from services.storage.remote_client import RemoteStorageClient
from services.storage.strategy import RemoteThenLocal

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
REMOTE_SIZE_CEILING = 2 * 1024 * 1024
REMOTE_TARGET_KB = 512
LOCAL_COMPRESS_THRESHOLD = 512 * 1024
LOCAL_TARGET_KB = 512


def new_asset_key() -> str:
    """Asset key carrying its creation time in epoch milliseconds."""
    return f"{ASSET_KEY_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:13]}"


class StorageFallbackAdapter:
    """
    Persists JSON documents and images, falling back from remote to local.

    Every call tries the remote medium only when force_remote is set and a
    remote client is configured. Any remote failure is recovered by writing
    to or reading from the local store; only local failures reach the caller.
    """

    def __init__(
        self,
        local_store: KeyValueStore,
        remote_client: Optional[RemoteStorageClient] = None,
        codec: Optional[ImageCodec] = None,
        capacity: Optional[LocalCapacityManager] = None,
        strategy: Optional[RemoteThenLocal] = None
    ):
        """
        Initialize the adapter.

        Args:
            local_store: Local persistent key-value store
            remote_client: Optional client for the remote endpoint
            codec: Image compressor (defaults to the Pillow codec)
            capacity: Capacity manager over local_store
            strategy: Fallback policy (timeouts and eviction opt-in)
        """
        self.local_store = local_store
        self.remote_client = remote_client
        self.codec = codec or ImageCodec()
        self.capacity = capacity or LocalCapacityManager(
            local_store, quota_bytes=local_store.quota_bytes or ASSUMED_QUOTA_BYTES
        )
        self.strategy = strategy or RemoteThenLocal()

    def _wants_remote(self, force_remote: bool) -> bool:
        return force_remote and self.remote_client is not None

    def _evict_for_space(self) -> bool:
        """Run the single permitted eviction pass. Returns True if anything was freed."""
        if not self.strategy.evict_on_quota:
            return False
        return self.capacity.evict_oldest(confirmed=True) > 0

    # Documents

    def _write_local(self, key: str, text: str) -> None:
        try:
            self.local_store.set_item(key, text)
        except LocalQuotaExceeded:
            logger.warning(f"Local store full while saving {key}")
            if not self._evict_for_space():
                raise
            self.local_store.set_item(key, text)
        logger.info(f"Data saved locally: {key}")

    def _read_local(self, key: str) -> Any:
        text = self.local_store.get_item(key)
        if text is None:
            logger.info(f"No local data found for: {key}")
            return None
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.error(f"Local data for {key} is not valid JSON: {e}")
            return None
        validate_document(key, data)
        return data

    async def save(self, key: str, value: Any, force_remote: bool = False) -> StorageResult:
        """
        Replace the document stored under key.

        Args:
            key: Document key
            value: JSON-serializable document
            force_remote: Attempt the remote medium first

        Returns:
            StorageResult naming the medium that holds the value

        Raises:
            MalformedDocument: If value does not match the schema for key
            LocalQuotaExceeded: If the local fallback is full
            LocalWriteFailure: If the local fallback failed
        """
        validate_document(key, value)
        text = json.dumps(value, ensure_ascii=False)

        remote_call = None
        if self._wants_remote(force_remote):
            async def remote_call():
                return await self.remote_client.save_data(key, value)

        medium, _ = await self.strategy.run(
            f"save of {key}", remote_call, lambda: self._write_local(key, text)
        )
        if medium is Medium.REMOTE:
            logger.info(f"Data saved to remote storage: {key}")
        return StorageResult(medium=medium)

    async def get_result(self, key: str, force_remote: bool = False) -> StorageResult:
        """Like get, but also report which medium answered."""
        remote_call = None
        if self._wants_remote(force_remote):
            async def remote_call():
                return await self.remote_client.get_data(key)

        def accept_remote(data: Any) -> bool:
            if data is None:
                return False
            try:
                validate_document(key, data)
            except MalformedDocument as e:
                logger.warning(f"Ignoring remote data: {e}")
                return False
            return True

        medium, value = await self.strategy.run(
            f"get of {key}", remote_call, lambda: self._read_local(key), accept_remote=accept_remote
        )
        return StorageResult(medium=medium, value=value)

    async def get(self, key: str, force_remote: bool = False) -> Any:
        """
        Read the document stored under key.

        Returns:
            The stored value, or None if neither medium has it

        Raises:
            MalformedDocument: If the locally persisted value fails its schema
        """
        result = await self.get_result(key, force_remote)
        return result.value

    async def get_by_prefix(self, prefix: str) -> List[dict]:
        """List remote documents whose key starts with prefix. Remote only."""
        if self.remote_client is None:
            raise NetworkFailure("Remote storage is not configured")
        return await self.remote_client.get_data_by_prefix(prefix)

    async def delete(self, key: str) -> None:
        """Delete a remote document. Remote only; failures propagate."""
        if self.remote_client is None:
            raise NetworkFailure("Remote storage is not configured")
        await self.remote_client.delete_data(key)

    # Images

    def _store_asset_locally(self, asset: ImageAsset) -> str:
        candidate = asset
        if candidate.size > LOCAL_COMPRESS_THRESHOLD:
            logger.info(f"Compressing image for local storage ({asset.size / 1024 / 1024:.1f}MB)")
            candidate = self.codec.compress(asset, LOCAL_TARGET_KB, aggressive=True)

        data_url = to_data_url(candidate)
        key = new_asset_key()
        needed = entry_size(key, data_url)
        evicted = False

        if not self.capacity.has_space(needed):
            logger.warning("Insufficient local storage space for image")
            evicted = True
            if not self._evict_for_space() or not self.capacity.has_space(needed):
                raise LocalQuotaExceeded()

        try:
            self.local_store.set_item(key, data_url)
        except LocalQuotaExceeded:
            if evicted or not self._evict_for_space():
                raise
            self.local_store.set_item(key, data_url)

        logger.info(f"Image stored locally as {key} ({len(data_url) / 1024 / 1024:.1f}MB)")
        return data_url

    async def upload_asset(self, asset: ImageAsset, force_remote: bool = False) -> str:
        """
        Store an image and return a reference that renders it.

        Args:
            asset: Image to store
            force_remote: Attempt the remote medium first

        Returns:
            A URL when stored remotely, otherwise a self-contained data URL

        Raises:
            OversizeInput: If the image is above the 10MB ceiling
            LocalQuotaExceeded: If the local fallback is full
        """
        if asset.size > MAX_UPLOAD_BYTES:
            raise OversizeInput(asset.size, MAX_UPLOAD_BYTES)

        remote_call = None
        if self._wants_remote(force_remote):
            async def remote_call():
                candidate = asset
                if candidate.size > REMOTE_SIZE_CEILING:
                    logger.info(
                        f"File too large for remote storage ({asset.size / 1024 / 1024:.1f}MB), compressing"
                    )
                    candidate = await asyncio.to_thread(self.codec.compress, asset, REMOTE_TARGET_KB)
                return await self.remote_client.upload_image(candidate)

        medium, reference = await self.strategy.run(
            f"upload of {asset.name}",
            remote_call,
            lambda: asyncio.to_thread(self._store_asset_locally, asset),
            timeout=self.strategy.upload_timeout
        )
        return reference
