"""MemoryPanel — the pin form and the receiver search results."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from src.errors import StorageError, ValidationError
from src.images import prepare_attachment

if TYPE_CHECKING:
    from src.images import Attachment
    from src.map.gateway import MemoryGateway
    from src.map.view import Feature, MapView
    from src.memories.models import Memory

logger = logging.getLogger(__name__)

MISSING_LOCATION = "Please drag the marker to a location on the map."
MISSING_FIELDS = "Please fill in all fields."
IMAGE_FAILED = "Failed to process image"


@dataclass(frozen=True)
class PinForm:
    message: str = ""
    receiver: str = ""
    image: Attachment | None = None
    error: str | None = None
    submitting: bool = False


class MemoryPanel:
    """Form and result-list state next to the map."""

    def __init__(self, gateway: MemoryGateway, view: MapView) -> None:
        self._gateway = gateway
        self._view = view
        self._form = PinForm()

    @property
    def form(self) -> PinForm:
        return self._form

    @property
    def show_form(self) -> bool:
        """The form is open exactly while the map is in pin mode."""
        return self._view.state.pin_mode

    @property
    def results(self) -> tuple[Feature, ...]:
        return self._view.state.matched

    @property
    def detail(self) -> Feature | None:
        return self._view.state.selected

    def update_form(self, **changes: Any) -> PinForm:
        self._form = replace(self._form, **changes)
        return self._form

    # -- Form ------------------------------------------------------------------

    def toggle_form(self) -> None:
        """Open or close the pin form.

        The form starts empty each time. A search or a detail click on the map
        leaves pin mode, which closes the form as well.
        """
        self._view.toggle_pin(not self.show_form)
        self._form = PinForm()

    def edit(self, message: str | None = None, receiver: str | None = None) -> None:
        changes: dict[str, Any] = {"error": None}
        if message is not None:
            changes["message"] = message
        if receiver is not None:
            changes["receiver"] = receiver
        self.update_form(**changes)

    async def attach_image(self, data: bytes, filename: str) -> Attachment:
        """Compress and attach an image; the original is kept if that fails."""
        self.update_form(submitting=True)
        try:
            attachment = await prepare_attachment(data, filename)
        finally:
            self.update_form(submitting=False)
        error = None if attachment.compressed else IMAGE_FAILED
        self.update_form(image=attachment, error=error)
        return attachment

    async def submit(self) -> Memory | None:
        """Validate and send the form. Problems end up in ``form.error``."""
        self.update_form(error=None)
        state = self._view.state
        if not state.pin_mode:
            self.update_form(error=MISSING_LOCATION)
            return None
        if not self._form.message.strip() or not self._form.receiver.strip():
            self.update_form(error=MISSING_FIELDS)
            return None

        longitude, latitude = state.pin_location
        self.update_form(submitting=True)
        try:
            memory = await self._gateway.create(
                message=self._form.message,
                receiver=self._form.receiver,
                longitude=longitude,
                latitude=latitude,
                image=self._form.image,
            )
        except (ValidationError, StorageError) as exc:
            logger.warning("Pinning memory failed: %s", exc)
            self.update_form(error=f"Failed to pin memory: {exc}", submitting=False)
            return None

        self._view.add_new(memory)
        self._form = PinForm()
        self._view.toggle_pin(False)
        return memory

    # -- Results ---------------------------------------------------------------

    async def search(self, receiver: str) -> None:
        await self._view.search(receiver)

    def select_result(self, feature: Feature) -> None:
        self._view.zoom_to(feature)
