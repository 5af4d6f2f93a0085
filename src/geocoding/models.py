"""Place models returned by the Mapbox Search Box API."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field


def new_session_token() -> str:
    """Generate a fresh search session token."""
    return str(uuid.uuid4())


class ContextName(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""


class PlaceContext(BaseModel):
    """Administrative context of a suggestion (only the parts we display)."""

    model_config = ConfigDict(extra="ignore")

    place: ContextName | None = None
    region: ContextName | None = None
    country: ContextName | None = None

    def names(self) -> list[str]:
        """Context names in display order: place, region, country."""
        parts = (self.place, self.region, self.country)
        return [p.name for p in parts if p is not None and p.name]


class PlaceCandidate(BaseModel):
    """One ranked suggestion. ``id`` is only valid for retrieve in the same session."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="mapbox_id")
    name: str
    name_preferred: str | None = None
    feature_type: str = ""
    address: str | None = None
    full_address: str | None = None
    place_formatted: str | None = None
    context: PlaceContext | None = None

    @property
    def display_name(self) -> str:
        if self.name_preferred:
            return self.name_preferred
        names = self.context.names() if self.context else []
        if not names:
            return self.name
        return f"{self.name}, {', '.join(names)}"


class ResolvedPlace(BaseModel):
    """A suggestion resolved to an exact coordinate."""

    longitude: float
    latitude: float
    display_name: str
