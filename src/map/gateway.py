"""MemoryGateway — HTTP client the map UI uses to reach the memories API."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from src.config import settings
from src.errors import StorageError, ValidationError
from src.memories.models import Memory

if TYPE_CHECKING:
    from src.images import Attachment

logger = logging.getLogger(__name__)


class MemoryGateway:
    """Create, list and search memories over the HTTP API.

    Args:
        base_url: Root URL of the API (default from settings).
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str | None = None, timeout: float = 20) -> None:
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._timeout = timeout

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StorageError(f"Request to {path} failed: {exc}") from exc

        if resp.status_code == 400:
            raise ValidationError(_error_message(resp))
        if not resp.is_success:
            raise StorageError(f"{path} returned {resp.status_code}: {_error_message(resp)}")
        try:
            return resp.json()
        except ValueError as exc:
            raise StorageError(f"{path} returned invalid JSON") from exc

    async def create(
        self,
        message: str,
        receiver: str,
        longitude: float,
        latitude: float,
        image: Attachment | None = None,
    ) -> Memory:
        """Submit a new memory. Sends multipart when an image is attached."""
        if not message.strip() or not receiver.strip():
            raise ValidationError("Please fill in all fields.")

        fields = {
            "message": message,
            "receiver": receiver,
            "latitude": str(latitude),
            "longitude": str(longitude),
        }
        if image is not None:
            files = {"image": (image.filename, image.data, image.content_type)}
            body = await self._request("POST", "/api/submit", data=fields, files=files)
        else:
            payload = {**fields, "latitude": latitude, "longitude": longitude}
            body = await self._request("POST", "/api/submit", json=payload)

        records = body.get("data") if isinstance(body, dict) else None
        if not records or not isinstance(records[0], dict) or not records[0].get("id"):
            raise StorageError("Invalid response from server")
        return Memory.from_record(records[0])

    async def list_all(self) -> list[Memory]:
        body = await self._request("GET", "/api/messages")
        return _parse_records(body)

    async def search_by_receiver(self, text: str) -> list[Memory]:
        """Memories whose receiver contains *text* (case-insensitive)."""
        if not text.strip():
            raise ValidationError("Missing receiver")
        body = await self._request("GET", "/api/search", params={"receiver": text})
        return _parse_records(body)


def _parse_records(body: Any) -> list[Memory]:
    if not isinstance(body, list):
        raise StorageError("Expected a list of memories")
    memories = []
    for record in body:
        try:
            memories.append(Memory.from_record(record))
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed memory record: %s", record)
    return memories


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return resp.text[:200]
