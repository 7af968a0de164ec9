"""Typed per-feature document repositories over the storage fallback adapter."""

import logging
import time
from datetime import date
from typing import Generic, Iterable, List, Optional, Type, TypeVar

from shared.errors import DecodeFailure
from shared.models import ImageAsset
from shared.schemas import (
    Asset,
    CalendarEvent,
    DocumentRecord,
    JournalPost,
    Paper,
    Transaction,
    Travel,
    WeddingPhoto,
    dump_records,
    validate_document,
)
from services.storage.adapter import StorageFallbackAdapter
from services.storage.image_codec import ImageCodec

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=DocumentRecord)

DEFAULT_ASPECT_RATIO = 1.33


def new_record_id() -> str:
    """Record ids are creation times in epoch milliseconds."""
    return str(int(time.time() * 1000))


class DocumentRepository(Generic[RecordT]):
    """A list of records stored as one document under a fixed key."""

    def __init__(
        self,
        adapter: StorageFallbackAdapter,
        key: str,
        model: Type[RecordT],
        force_remote: bool = False
    ):
        self.adapter = adapter
        self.key = key
        self.model = model
        self.force_remote = force_remote

    async def load(self) -> List[RecordT]:
        data = await self.adapter.get(self.key, force_remote=self.force_remote)
        if data is None:
            return []
        return validate_document(self.key, data)

    async def save(self, records: Iterable[RecordT]):
        records = list(records)
        result = await self.adapter.save(self.key, dump_records(records), force_remote=self.force_remote)
        logger.info(f"Saved {len(records)} record(s) to {self.key} ({result.medium.value})")
        return result

    async def add(self, record: RecordT) -> List[RecordT]:
        """Prepend a record, newest first, and save the whole list."""
        records = [record] + await self.load()
        await self.save(records)
        return records

    async def remove(self, record_id: str) -> List[RecordT]:
        records = [r for r in await self.load() if r.id != record_id]
        await self.save(records)
        return records


def papers(adapter: StorageFallbackAdapter) -> DocumentRepository[Paper]:
    return DocumentRepository(adapter, "papers", Paper)


def travel_records(adapter: StorageFallbackAdapter) -> DocumentRepository[Travel]:
    return DocumentRepository(adapter, "board_travel_records", Travel)


def journal_posts(adapter: StorageFallbackAdapter) -> DocumentRepository[JournalPost]:
    return DocumentRepository(adapter, "board_jamong_posts", JournalPost)


def calendar_events(adapter: StorageFallbackAdapter) -> DocumentRepository[CalendarEvent]:
    return DocumentRepository(adapter, "calendarEvents", CalendarEvent)


class BudgetBook:
    """Household transactions and asset balances."""

    def __init__(self, adapter: StorageFallbackAdapter):
        self.transactions = DocumentRepository(adapter, "budgetTransactions", Transaction)
        self.assets = DocumentRepository(adapter, "budgetAssets", Asset)

    async def monthly_totals(self, year: int, month: int) -> dict:
        """
        Sum income and expense for one calendar month.

        Returns:
            Dict with income, expense and balance (income - expense)
        """
        prefix = f"{year:04d}-{month:02d}-"
        income = expense = 0.0
        for transaction in await self.transactions.load():
            if not transaction.date.startswith(prefix):
                continue
            if transaction.type == "income":
                income += transaction.amount
            else:
                expense += transaction.amount
        return {"income": income, "expense": expense, "balance": income - expense}

    async def total_assets(self) -> float:
        return sum(asset.amount for asset in await self.assets.load())


def aspect_ratio(asset: ImageAsset, codec: Optional[ImageCodec] = None) -> float:
    """Width over height, or 4:3 when the image cannot be read."""
    try:
        image = (codec or ImageCodec()).decode(asset)
    except DecodeFailure as e:
        logger.warning(f"Using default aspect ratio: {e}")
        return DEFAULT_ASPECT_RATIO
    if image.width <= 0 or image.height <= 0:
        return DEFAULT_ASPECT_RATIO
    return image.width / image.height


class WeddingGallery(DocumentRepository[WeddingPhoto]):
    """Wedding photos, kept on the remote medium whenever it is reachable."""

    def __init__(self, adapter: StorageFallbackAdapter):
        super().__init__(adapter, "board_wedding_photos", WeddingPhoto, force_remote=True)

    async def upload_photos(self, assets: List[ImageAsset], base_title: str) -> List[WeddingPhoto]:
        """
        Upload images and prepend one photo record per image.

        Args:
            assets: Images in upload order
            base_title: Title; numbered when more than one image is uploaded

        Returns:
            The full photo list after saving
        """
        stamp = new_record_id()
        today = date.today().isoformat()
        uploaded = []
        for index, asset in enumerate(assets):
            ratio = aspect_ratio(asset, self.adapter.codec)
            reference = await self.adapter.upload_asset(asset, force_remote=True)
            if reference.startswith("data:"):
                logger.warning(f"Wedding photo {asset.name} stored locally")
            single = len(assets) == 1
            uploaded.append(WeddingPhoto(
                id=stamp if single else f"{stamp}_{index}",
                title=base_title if single else f"{base_title} {index + 1}",
                image=reference,
                upload_date=today,
                aspect_ratio=ratio,
            ))

        photos = uploaded + await self.load()
        await self.save(photos)
        return photos
