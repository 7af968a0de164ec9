"""Unit tests for the local capacity manager."""

import pytest

from shared.kv_store import InMemoryKeyValueStore
from services.storage.capacity import LocalCapacityManager, parse_asset_timestamp


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def capacity(store):
    return LocalCapacityManager(store, quota_bytes=1000, buffer_bytes=100)


def test_parse_asset_timestamp():
    assert parse_asset_timestamp("image_1700000000000_abc") == 1700000000000
    assert parse_asset_timestamp("papers") is None
    assert parse_asset_timestamp("image_notatime_abc") is None


def test_has_space_on_empty_store(capacity):
    assert capacity.has_space(800) is True


def test_has_space_counts_keys_values_and_buffer(store, capacity):
    store.set_item("k" * 100, "v" * 400)

    # 500 used + 100 buffer + 399 requested stays under 1000
    assert capacity.has_space(399) is True
    assert capacity.has_space(400) is False


def test_default_quota_is_ten_megabytes(store):
    capacity = LocalCapacityManager(store)

    assert capacity.quota_bytes == 10 * 1024 * 1024
    assert capacity.has_space(8 * 1024 * 1024) is True
    assert capacity.has_space(9 * 1024 * 1024) is False


def test_asset_keys_sorted_by_embedded_timestamp(store, capacity):
    store.set_item("image_300_c", "3")
    store.set_item("image_100_a", "1")
    store.set_item("image_2000_b", "2")
    store.set_item("papers", "[]")

    # Numeric order, not lexicographic
    assert capacity.asset_keys() == ["image_100_a", "image_300_c", "image_2000_b"]


def test_evict_oldest_removes_older_half(store, capacity):
    for timestamp in (100, 200, 300, 400, 500):
        store.set_item(f"image_{timestamp}_x", "data")

    removed = capacity.evict_oldest(confirmed=True)

    assert removed == 2
    assert sorted(store.keys()) == ["image_300_x", "image_400_x", "image_500_x"]


def test_evict_never_touches_documents(store, capacity):
    store.set_item("papers", "[]")
    store.set_item("loginAttempts", "{}")
    store.set_item("pomodoroSettings", "{}")
    store.set_item("image_1_a", "data")
    store.set_item("image_2_b", "data")

    capacity.evict_oldest(confirmed=True)

    assert {"papers", "loginAttempts", "pomodoroSettings"} <= set(store.keys())
    assert "image_1_a" not in store.keys()


def test_evict_requires_confirmation(store, capacity):
    store.set_item("image_1_a", "data")
    store.set_item("image_2_b", "data")

    assert capacity.evict_oldest(confirmed=False) == 0
    assert len(store.keys()) == 2


def test_evict_single_asset_removes_nothing(store, capacity):
    store.set_item("image_1_a", "data")

    assert capacity.evict_oldest(confirmed=True) == 0
