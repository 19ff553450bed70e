from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CrowdModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CrowdModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class NearbyQuery(Location):
    """Payload for the getNearbyEvents / getNearbySignals callables."""
    radius_km: float = Field(..., gt=0)


class SpatialQuery(CrowdModel):
    """
    Range over a geohash-sorted index. Every key starting with `prefix` satisfies
    start <= key <= end.
    """
    prefix: str
    start: str
    end: str
    precision: int
