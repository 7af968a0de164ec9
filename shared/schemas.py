"""Per-feature document schemas, validated at the serialization boundary.

Each stored document key maps to a list of one record type. Documents under
keys that are not registered here are stored untyped.
"""

from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from shared.errors import MalformedDocument


class DocumentRecord(BaseModel):
    """Base for persisted records. Field names are camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Paper(DocumentRecord):
    """Paper-study notebook entry (content is markdown)."""
    id: str
    title: str
    content: str = ""
    category: Literal["VTON", "LLM", "stock"]
    tags: List[str] = Field(default_factory=list)
    created_at: str
    updated_at: str


class Transaction(DocumentRecord):
    """Household budget transaction."""
    id: str
    date: str
    type: Literal["income", "expense"]
    category: str
    amount: float = Field(ge=0)
    description: str = ""


class Asset(DocumentRecord):
    """Household asset balance."""
    id: str
    name: str
    type: Literal["savings", "investment", "real-estate", "other"]
    amount: float = Field(ge=0)
    last_updated: str


class TravelDay(DocumentRecord):
    day: int = Field(ge=1)
    activities: str = ""
    images: List[str] = Field(default_factory=list)


class Travel(DocumentRecord):
    """Travel log with a per-day itinerary."""
    id: str
    title: str
    destination: str
    companion: str = ""
    duration: int = Field(ge=0)
    budget: float = Field(default=0, ge=0)
    start_date: str
    end_date: str
    description: str = ""
    days: List[TravelDay] = Field(default_factory=list)


class WeddingPhoto(DocumentRecord):
    """Wedding gallery photo. image is a URL or an inline data URL."""
    id: str
    title: str
    image: str
    upload_date: str
    aspect_ratio: Optional[float] = None


class JournalPost(DocumentRecord):
    """Pregnancy journal post or ultrasound record."""
    id: str
    date: str
    title: str
    content: str = ""
    image: Optional[str] = None
    type: Literal["post", "ultrasound"] = "post"


class CalendarEvent(DocumentRecord):
    id: str
    title: str
    description: str = ""
    date: str
    time: str = ""
    location: Optional[str] = None
    type: Literal["work", "personal", "family", "research"] = "personal"


DOCUMENT_SCHEMAS: Dict[str, Type[DocumentRecord]] = {
    "papers": Paper,
    "budgetTransactions": Transaction,
    "budgetAssets": Asset,
    "board_travel_records": Travel,
    "board_wedding_photos": WeddingPhoto,
    "board_jamong_posts": JournalPost,
    "calendarEvents": CalendarEvent,
}

_adapters: Dict[str, TypeAdapter] = {}


def _adapter_for(key: str) -> Optional[TypeAdapter]:
    model = DOCUMENT_SCHEMAS.get(key)
    if model is None:
        return None
    if key not in _adapters:
        _adapters[key] = TypeAdapter(List[model])
    return _adapters[key]


def validate_document(key: str, data: Any) -> Any:
    """
    Check a raw document against the schema registered for its key.

    Args:
        key: Document key
        data: Raw JSON-compatible value

    Returns:
        The list of parsed records for registered keys, otherwise data itself

    Raises:
        MalformedDocument: If the value does not match the registered schema
    """
    adapter = _adapter_for(key)
    if adapter is None or data is None:
        return data
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedDocument(key, f"{e.error_count()} validation error(s)") from e


def dump_records(records: List[DocumentRecord]) -> List[dict]:
    """Serialize parsed records back into their wire form."""
    return [record.to_document() for record in records]
