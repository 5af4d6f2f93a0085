"""Wires the map, the memory panel and the location search box together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.geocoding.client import GeocodingClient
from src.map.gateway import MemoryGateway
from src.map.panel import MemoryPanel
from src.map.view import MapView
from src.searchbox.controller import SearchBoxController

if TYPE_CHECKING:
    from src.map.view import MapEngine

logger = logging.getLogger(__name__)


@dataclass
class MapApp:
    view: MapView
    panel: MemoryPanel
    search_box: SearchBoxController

    async def start(self) -> None:
        """Load the memories shown at startup."""
        await self.view.load()

    def close(self) -> None:
        self.search_box.close()


def create_map_app(
    engine: MapEngine,
    gateway: MemoryGateway | None = None,
    geocoder: GeocodingClient | None = None,
) -> MapApp:
    """Build the UI components; a resolved search location moves the map."""
    gateway = gateway or MemoryGateway()
    view = MapView(gateway, engine)
    search_box = SearchBoxController(
        geocoder or GeocodingClient(),
        on_location_selected=view.select_location,
        on_temporary_marker=view.place_temporary_marker,
    )
    return MapApp(view=view, panel=MemoryPanel(gateway, view), search_box=search_box)
