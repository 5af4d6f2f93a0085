"""MemoryService — create, list and search memories.

Creating a memory with an image is two writes against two backends: the
image goes to the blob store first, then the row goes to the database. When
the row insert fails the uploaded blob is deleted again so no orphan remains.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from src.blobs import BlobStore, get_blob_store, make_image_key
from src.errors import StorageError, ValidationError
from src.memories.models import (
    Memory,
    make_memory_id,
    now_iso,
    validate_coordinate,
    validate_text,
)
from src.memories.store import MemoryStore

if TYPE_CHECKING:
    from src.images import Attachment

logger = logging.getLogger(__name__)


class MemoryService:
    """Validation and persistence for memories.

    Args:
        store: Database access (default: the shared ``MemoryStore``).
        blobs: Image storage (default: the configured blob store).
    """

    def __init__(self, store: MemoryStore | None = None, blobs: BlobStore | None = None) -> None:
        self._store = store or MemoryStore.get()
        self._blobs = blobs or get_blob_store()

    @property
    def blobs(self) -> BlobStore:
        return self._blobs

    async def create(
        self,
        message: Any,
        receiver: Any,
        latitude: Any,
        longitude: Any,
        image: Attachment | None = None,
    ) -> Memory:
        """Validate, upload the optional image, then insert the record.

        Raises:
            ValidationError: a required field is missing or malformed.
            StorageError: the blob store or the database failed.
        """
        message = validate_text(message, "message")
        receiver = validate_text(receiver, "receiver")
        lat, lng = validate_coordinate(latitude, longitude)

        memory_id = make_memory_id()
        image_path = image_url = None
        if image is not None:
            if not image.data:
                raise ValidationError("Image attachment is empty")
            image_path = make_image_key(image.filename, image.data, memory_id)
            image_url = await self._blobs.put(image_path, image.data, image.content_type)

        memory = Memory(
            id=memory_id,
            message=message,
            receiver=receiver,
            latitude=lat,
            longitude=lng,
            created_at=now_iso(),
            image_path=image_path,
            image_url=image_url,
        )

        try:
            return await self._store.insert(memory)
        except Exception as exc:
            logger.exception("Memory insert failed")
            if image_path is not None:
                await self._discard_blob(image_path)
            raise StorageError(f"Failed to store memory: {exc}") from exc

    async def _discard_blob(self, key: str) -> None:
        try:
            await self._blobs.delete(key)
        except Exception:
            logger.exception("Compensating delete failed for blob %s", key)

    async def list_all(self) -> list[Memory]:
        try:
            return await self._store.list_all()
        except Exception as exc:
            logger.exception("Listing memories failed")
            raise StorageError(f"Failed to list memories: {exc}") from exc

    async def search_by_receiver(self, text: Any) -> list[Memory]:
        """Memories whose receiver contains *text*, ignoring case.

        Raises ``ValidationError`` if *text* is empty or blank.
        """
        text = validate_text(text, "receiver")
        try:
            return await self._store.search_by_receiver(text.strip())
        except Exception as exc:
            logger.exception("Receiver search failed")
            raise StorageError(f"Failed to search memories: {exc}") from exc
