"""Local storage capacity estimation and asset eviction."""

import logging
import re
from typing import List, Optional, Tuple

from shared.kv_store import KeyValueStore, entry_size

logger = logging.getLogger(__name__)

ASSUMED_QUOTA_BYTES = 10 * 1024 * 1024
SAFETY_BUFFER_BYTES = 1024 * 1024

ASSET_KEY_PREFIX = "image_"
_ASSET_KEY_PATTERN = re.compile(r"^image_(\d+)_")


def parse_asset_timestamp(key: str) -> Optional[int]:
    """Return the creation timestamp embedded in an asset key, if any."""
    match = _ASSET_KEY_PATTERN.match(key)
    return int(match.group(1)) if match else None


class LocalCapacityManager:
    """
    Estimates local store usage and evicts the oldest inline assets.

    The real platform quota cannot be introspected, so has_space compares
    against a conservative assumed quota.
    """

    def __init__(
        self,
        store: KeyValueStore,
        quota_bytes: int = ASSUMED_QUOTA_BYTES,
        buffer_bytes: int = SAFETY_BUFFER_BYTES
    ):
        self.store = store
        self.quota_bytes = quota_bytes
        self.buffer_bytes = buffer_bytes

    def used_bytes(self) -> int:
        return sum(entry_size(key, value) for key, value in self.store.items())

    def has_space(self, additional_bytes: int) -> bool:
        """Check whether additional_bytes more would fit with the safety buffer."""
        used = self.used_bytes()
        needed = used + additional_bytes + self.buffer_bytes

        logger.info(
            f"Local usage: {used / 1024 / 1024:.1f}MB, adding: "
            f"{additional_bytes / 1024 / 1024:.1f}MB, max: "
            f"{self.quota_bytes / 1024 / 1024:.1f}MB"
        )
        return needed < self.quota_bytes

    def asset_keys(self) -> List[str]:
        """Asset keys ordered oldest first by embedded timestamp."""
        stamped: List[Tuple[int, str]] = []
        for key in self.store.keys():
            timestamp = parse_asset_timestamp(key)
            if timestamp is not None:
                stamped.append((timestamp, key))
        return [key for _, key in sorted(stamped)]

    def evict_oldest(self, *, confirmed: bool) -> int:
        """
        Remove the oldest half of the inline image assets.

        Assets are not re-derivable, so nothing is removed unless the caller
        explicitly confirmed the eviction. Documents, settings and session
        state are never touched.

        Args:
            confirmed: Caller opt-in for the destructive eviction

        Returns:
            Number of assets removed
        """
        if not confirmed:
            logger.warning("Eviction requested without confirmation, nothing removed")
            return 0

        keys = self.asset_keys()
        to_remove = keys[:len(keys) // 2]
        freed = 0
        for key in to_remove:
            value = self.store.get_item(key)
            if value is not None:
                freed += entry_size(key, value)
            self.store.remove_item(key)

        logger.warning(
            f"Evicted {len(to_remove)} old images, freed {freed / 1024 / 1024:.1f}MB"
        )
        return len(to_remove)
