from typing import Any, Dict, List, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .exceptions import InvalidCoordinateError, MalformedRecordError
from .types import GeoPoint
from .utils import coordinates_valid


class LocationRecord(BaseModel):
    geohash: str = Field(alias="g")
    location: List[Union[StrictInt, StrictFloat]] = Field(alias="l")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("location", mode="before")
    @classmethod
    def _reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)) and any(
            isinstance(item, bool) for item in value
        ):
            raise ValueError("Location values must be numbers, not booleans")
        return value

    @field_validator("location")
    @classmethod
    def _check_location(cls, value: List[float]) -> List[float]:
        if len(value) != 2:
            raise ValueError(
                "Location must contain latitude and longitude. "
                f"The size of location is {len(value)} now."
            )
        if not coordinates_valid(value[0], value[1]):
            raise ValueError(f"GeoPoint [lat: {value[0]}, lon: {value[1]}] is invalid")
        return value

    @classmethod
    def from_point(cls, point: GeoPoint) -> "LocationRecord":
        return cls(geohash=point.geohash, location=[point.lat, point.lon])

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(float(self.location[0]), float(self.location[1]))


class DocumentView(BaseModel):
    key: str
    data: Dict[str, Any] = Field(default_factory=dict)


class WriteDocument(BaseModel):
    data: Dict[str, Any]


def parse_location(key: str, record: Any) -> LocationRecord:
    if not isinstance(record, dict) or "g" not in record or "l" not in record:
        raise MalformedRecordError(
            f"Check {key}. Document has no geohash and location fields."
        )
    try:
        return LocationRecord.model_validate(record)
    except PydanticValidationError as exc:
        raise InvalidCoordinateError(f"Check {key}. {exc}") from exc
