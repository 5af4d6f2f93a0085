"""MapView — the canonical memory feature collection and map gestures.

Holds every memory feature the map renders, plus the transient UI state
around it (selection, receiver matches, markers). Rendering is delegated to a
``MapEngine``; data comes from a ``MemoryGateway``. The backend is the source
of truth: features are loaded once, then only appended to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Protocol

from src.errors import StorageError, ValidationError
from src.map import layers

if TYPE_CHECKING:
    from src.map.gateway import MemoryGateway
    from src.memories.models import Memory

logger = logging.getLogger(__name__)

Feature = dict[str, Any]

DEFAULT_CENTER = (-103.59, 40.67)
DETAIL_ZOOM = 9
LOCATION_ZOOM = 13


class MapEngine(Protocol):
    """The external renderer the view drives."""

    def ease_to(self, center: tuple[float, float], zoom: float, duration_ms: int) -> None: ...

    async def cluster_expansion_zoom(self, cluster_id: int) -> float | None: ...

    def center(self) -> tuple[float, float]: ...


@dataclass(frozen=True)
class MapState:
    """Transient view state. Features live on the view itself."""

    selected: Feature | None = None
    matched: tuple[Feature, ...] = ()
    search_query: str = ""
    pin_mode: bool = False
    pin_location: tuple[float, float] = DEFAULT_CENTER
    temp_marker: tuple[float, float] | None = None
    loading: bool = False


def feature_id(feature: Feature) -> str | None:
    return (feature.get("properties") or {}).get("id")


def feature_coordinates(feature: Feature) -> tuple[float, float]:
    lng, lat = feature["geometry"]["coordinates"][:2]
    return float(lng), float(lat)


class MapView:
    """Map state plus gesture routing.

    Args:
        gateway: API client used to load and search memories.
        engine: Renderer receiving camera moves and cluster queries.
    """

    def __init__(self, gateway: MemoryGateway, engine: MapEngine) -> None:
        self._gateway = gateway
        self._engine = engine
        self._features: list[Feature] = []
        self._state = MapState()

    @property
    def state(self) -> MapState:
        return self._state

    @property
    def features(self) -> list[Feature]:
        return list(self._features)

    def update(self, **changes: Any) -> MapState:
        """Single entry point for state changes."""
        self._state = replace(self._state, **changes)
        return self._state

    def source(self) -> dict:
        """Clustered GeoJSON source for the renderer."""
        return layers.source_config(self._features)

    # -- Data ------------------------------------------------------------------

    async def load(self) -> None:
        """Fetch every memory once at startup."""
        self.update(loading=True)
        try:
            memories = await self._gateway.list_all()
        except StorageError:
            logger.exception("Failed to fetch memories")
            return
        finally:
            self.update(loading=False)
        self._features = []
        self.merge(memories)
        logger.info("Loaded %d memories", len(self._features))

    def merge(self, memories: list[Memory]) -> list[Feature]:
        """Append features not already held (by id). Returns the ones added."""
        seen = {feature_id(f) for f in self._features}
        added = []
        for memory in memories:
            feature = memory.to_feature()
            if feature_id(feature) in seen:
                continue
            seen.add(feature_id(feature))
            added.append(feature)
        self._features.extend(added)
        return added

    async def search(self, receiver: str) -> None:
        """Find memories for *receiver*: local matches first, then the backend's."""
        self.update(search_query=receiver, temp_marker=None, pin_mode=False)
        if not receiver.strip():
            self.update(matched=())
            return

        needle = receiver.strip().casefold()
        local = [
            f
            for f in self._features
            if needle in str((f.get("properties") or {}).get("receiver", "")).casefold()
        ]

        self.update(loading=True)
        try:
            remote = await self._gateway.search_by_receiver(receiver)
        except (StorageError, ValidationError):
            logger.exception("Receiver search failed")
            return
        finally:
            self.update(loading=False)

        self.merge(remote)
        matched = list(local)
        seen = {feature_id(f) for f in local}
        for memory in remote:
            feature = memory.to_feature()
            if feature_id(feature) not in seen:
                seen.add(feature_id(feature))
                matched.append(feature)
        self.update(matched=tuple(matched), selected=None)

    def add_new(self, memory: Memory) -> Feature:
        """Show a memory that was just created and centre on it."""
        feature = memory.to_feature()
        self._features.append(feature)
        self._focus(feature)
        return feature

    def zoom_to(self, feature: Feature) -> None:
        """A search result was chosen in the panel."""
        self._focus(feature)

    def _focus(self, feature: Feature) -> None:
        self.update(
            matched=(), selected=feature, search_query="", temp_marker=None, pin_mode=False
        )
        self._engine.ease_to(feature_coordinates(feature), DETAIL_ZOOM, 500)

    # -- Gestures --------------------------------------------------------------

    async def click(self, feature: Feature | None) -> None:
        """Route a click on the interactive layers (``None`` = empty map)."""
        if feature is None:
            self.update(temp_marker=None)
            return

        props = feature.get("properties") or {}
        if props.get("cluster"):
            cluster_id = props.get("cluster_id")
            if cluster_id is None:
                return
            zoom = await self._engine.cluster_expansion_zoom(cluster_id)
            if zoom is None:
                return
            self._engine.ease_to(feature_coordinates(feature), zoom, 500)
            return

        self.update(selected=feature, matched=(), search_query="", temp_marker=None, pin_mode=False)

    def toggle_pin(self, show: bool) -> None:
        """Enter or leave pin placement; a new pin starts at the map centre."""
        if show:
            self.update(pin_mode=True, pin_location=self._engine.center(), temp_marker=None)
        else:
            self.update(pin_mode=False, temp_marker=None)

    def drag_pin(self, longitude: float, latitude: float) -> None:
        if self._state.pin_mode:
            self.update(pin_location=(longitude, latitude))

    def select_location(self, longitude: float, latitude: float, zoom: float = LOCATION_ZOOM) -> None:
        """Fly to a place resolved by the location search box."""
        self._engine.ease_to((longitude, latitude), zoom, 1000)

    def place_temporary_marker(self, longitude: float, latitude: float) -> None:
        self.update(temp_marker=(longitude, latitude))
