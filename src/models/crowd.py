from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import BeforeValidator, Field, model_validator

from src.config import STORAGE_PRECISION
from src.geohash.geohash_utils import encode
from src.models.geo import CrowdModel, Location


def parse_timestamp(value):
    """Accept Firestore timestamp maps ({"_seconds", "_nanoseconds"}) alongside ISO strings."""
    if isinstance(value, dict):
        seconds = value.get("_seconds", value.get("seconds"))
        if seconds is None:
            return None
        nanoseconds = value.get("_nanoseconds", value.get("nanoseconds", 0))
        return datetime.fromtimestamp(seconds + nanoseconds / 1e9, tz=timezone.utc)
    return value


Timestamp = Annotated[Optional[datetime], BeforeValidator(parse_timestamp)]


class Event(CrowdModel):
    id: str
    title: str
    host_id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    geohash: Optional[str] = None
    radius_meters: float = 60
    people_count: int = 0
    attendee_count: int = 0
    signal_strength: int = 0
    tags: List[str] = []
    distance: Optional[float] = None  # Computed by backend

    created_at: Timestamp = None
    updated_at: Timestamp = None
    starts_at: Timestamp = None
    ends_at: Timestamp = None

    @model_validator(mode="after")
    def fill_geohash(self):
        if not self.geohash:
            self.geohash = encode(self.latitude, self.longitude, STORAGE_PRECISION)
        return self

    @property
    def coordinate(self):
        return (self.latitude, self.longitude)


class Signal(CrowdModel):
    id: str
    user_id: str
    event_id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    geohash: Optional[str] = None
    signal_strength: int = 1
    people_count: int = 0
    color: Optional[str] = None
    radius_meters: int = 75
    distance: Optional[float] = None  # Computed by backend

    created_at: Timestamp = None
    updated_at: Timestamp = None

    @model_validator(mode="after")
    def fill_geohash(self):
        if not self.geohash:
            self.geohash = encode(self.latitude, self.longitude, STORAGE_PRECISION)
        return self

    @property
    def coordinate(self):
        return (self.latitude, self.longitude)


class CreateEventRequest(Location):
    title: str = Field(..., min_length=1)
    radius_meters: float = Field(60, gt=0)
    tags: List[str] = []


class CreateSignalRequest(Location):
    event_id: str = Field(..., min_length=1)
    signal_strength: int = Field(5, ge=1, le=5)
