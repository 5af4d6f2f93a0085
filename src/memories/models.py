"""Memory data model and field validation."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from src.errors import ValidationError

FEATURE_ID_PREFIX = "msg"


@dataclass(frozen=True)
class Memory:
    """A message pinned to a location for a receiver.

    Attributes:
        id: Unique identifier (UUID hex), assigned on create.
        message: Free text, never blank.
        receiver: Who the memory is for, never blank.
        latitude: Degrees in [-90, 90].
        longitude: Degrees in [-180, 180].
        created_at: ISO 8601 UTC timestamp, assigned on create.
        image_path: Blob key of the attached image, if any.
        image_url: Public URL of the attached image, if any.
    """

    id: str
    message: str
    receiver: str
    latitude: float
    longitude: float
    created_at: str
    image_path: str | None = None
    image_url: str | None = None

    @property
    def has_image(self) -> bool:
        return self.image_path is not None

    @property
    def feature_id(self) -> str:
        return f"{FEATURE_ID_PREFIX}{self.id}"

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``memories`` column order."""
        return (
            self.id,
            self.message,
            self.receiver,
            self.latitude,
            self.longitude,
            self.created_at,
            int(self.has_image),
            self.image_path,
            self.image_url,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Memory:
        return cls(
            id=row[0],
            message=row[1],
            receiver=row[2],
            latitude=float(row[3]),
            longitude=float(row[4]),
            created_at=row[5],
            image_path=row[7],
            image_url=row[8],
        )

    def to_record(self) -> dict[str, Any]:
        """JSON shape returned by the HTTP API."""
        return {
            "id": self.id,
            "message": self.message,
            "receiver": self.receiver,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "time": self.created_at,
            "has_image": self.has_image,
            "image_path": self.image_path,
            "image_url": self.image_url,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Memory:
        """Parse an HTTP API record. Raises ``KeyError``/``ValueError`` if malformed."""
        return cls(
            id=str(record["id"]),
            message=record["message"],
            receiver=record["receiver"],
            latitude=float(record["latitude"]),
            longitude=float(record["longitude"]),
            created_at=record.get("time") or "",
            image_path=record.get("image_path") if record.get("has_image") else None,
            image_url=record.get("image_url") if record.get("has_image") else None,
        )

    def to_feature(self) -> dict[str, Any]:
        """GeoJSON point feature consumed by the map's clustering source."""
        return {
            "type": "Feature",
            "geometry": {
                "type": "Point",
                "coordinates": [self.longitude, self.latitude],
            },
            "properties": {
                "id": self.feature_id,
                "message": self.message,
                "receiver": self.receiver,
                "time": self.created_at,
                "hasImage": self.has_image,
                "image_url": self.image_url,
            },
        }


def make_memory_id() -> str:
    """Generate a new memory ID."""
    return uuid.uuid4().hex


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _parse_degrees(value: Any, name: str, limit: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Missing {name}")
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}: {value!r}")
    try:
        degrees = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {name}: {value!r}") from exc
    if not math.isfinite(degrees) or not -limit <= degrees <= limit:
        raise ValidationError(f"{name} out of range: {value!r}")
    return degrees


def validate_coordinate(latitude: Any, longitude: Any) -> tuple[float, float]:
    """Parse and range-check a coordinate pair. Returns ``(latitude, longitude)``."""
    return (
        _parse_degrees(latitude, "latitude", 90.0),
        _parse_degrees(longitude, "longitude", 180.0),
    )


def validate_text(value: Any, name: str) -> str:
    """Require a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing {name}")
    return value
