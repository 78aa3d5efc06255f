# backend/models.py
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dates import parse_duration, parse_when, to_storage

# Keys the document store (or an old mongoose export) adds that never go on the wire.
STORAGE_ONLY_KEYS = ("_id", "__v")


def _storage_form(value: Any) -> Any:
    """Recursively swap aware datetimes for the naive-UTC form pymongo stores."""
    if isinstance(value, datetime):
        return to_storage(value)
    if isinstance(value, dict):
        return {k: _storage_form(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_storage_form(v) for v in value]
    return value


class Interruption(BaseModel):
    """A spell of being awake during the night."""

    model_config = ConfigDict(extra="ignore")

    duration: Optional[str] = None  # ISO-8601, e.g. "PT45M"
    notes: str = ""

    @field_validator("duration", mode="before")
    @classmethod
    def normalize_duration(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return parse_duration(v)

    @field_validator("notes", mode="before")
    @classmethod
    def none_is_blank(cls, v):
        return "" if v is None else v


class SubstanceDose(BaseModel):
    """Medication or alcohol taken before bed."""

    model_config = ConfigDict(extra="ignore")

    substance: Optional[str] = None
    time: Optional[datetime] = None
    quantity: Optional[float] = None

    @field_validator("time", mode="before")
    @classmethod
    def normalize_time(cls, v):
        return parse_when(v)


class NightRecord(BaseModel):
    """
    One night of sleep, keyed by the date the subject woke up.

    Field aliases are the camelCase names the front end (and the stored
    documents) use; `interuptions` keeps its historical spelling on the wire,
    but `interruptions` is accepted on input too.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date_awake: datetime = Field(alias="dateAwake")
    edited: bool = False
    bed_time: Optional[datetime] = Field(default=None, alias="bedTime")
    fell_asleep_at: Optional[datetime] = Field(default=None, alias="fellAsleepAt")
    interruptions: List[Interruption] = Field(default_factory=list, alias="interuptions")
    woke_up: Optional[datetime] = Field(default=None, alias="wokeUp")
    got_up: Optional[datetime] = Field(default=None, alias="gotUp")
    rested_rating: Optional[str] = Field(default=None, alias="restedRating")
    sleep_quality: Optional[str] = Field(default=None, alias="sleepQuality")
    meds_and_alcohol: List[SubstanceDose] = Field(default_factory=list, alias="medsAndAlcohol")
    notes: Optional[str] = None

    @field_validator(
        "date_awake", "bed_time", "fell_asleep_at", "woke_up", "got_up", mode="before"
    )
    @classmethod
    def normalize_dates(cls, v):
        return parse_when(v)

    @field_validator("rested_rating", "sleep_quality", mode="before")
    @classmethod
    def ratings_as_text(cls, v):
        # the rating widgets send numbers, older records hold strings
        if isinstance(v, bool):
            raise ValueError("rating must be text or a number")
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("interruptions", "meds_and_alcohol", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return [] if v is None else v

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "NightRecord":
        """Build a record from a stored document (or a lean query result)."""
        return cls.model_validate(
            {k: v for k, v in doc.items() if k not in STORAGE_ONLY_KEYS}
        )

    def to_document(self) -> Dict[str, Any]:
        """Storage form: wire field names, naive UTC datetimes, unset optionals omitted."""
        return _storage_form(self.model_dump(by_alias=True, exclude_none=True))

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict for API responses."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _wire_names() -> Tuple[str, ...]:
    return tuple(f.alias or name for name, f in NightRecord.model_fields.items())


# Every property of a night except the key itself can be graphed.
ANALYTICS_FIELDS: Tuple[str, ...] = tuple(n for n in _wire_names() if n != "dateAwake")


class ClearResult(BaseModel):
    deleted: int
