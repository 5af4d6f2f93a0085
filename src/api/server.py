"""Async HTTP API for pinning and finding memories.

Routes:

- ``GET  /health``                — liveness check
- ``GET  /api/messages``          — every memory
- ``GET  /api/search?receiver=``  — memories whose receiver contains the term
- ``POST /api/submit``            — create a memory (JSON or multipart with ``image``)
- ``GET  /blobs/{key}``           — locally stored images (local blob backend only)

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from src.blobs import LocalBlobStore, detect_content_type
from src.config import settings
from src.errors import StorageError, ValidationError
from src.images import Attachment
from src.memories.service import MemoryService

logger = logging.getLogger(__name__)

SERVICE_KEY = web.AppKey("memory_service", MemoryService)

_FORM_FIELDS = ("message", "receiver", "latitude", "longitude")


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _health(request: web.Request) -> web.Response:
    """GET /health — basic liveness check."""
    return web.json_response({"status": "ok"})


async def _list_messages(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    try:
        memories = await service.list_all()
    except StorageError as exc:
        return _error(str(exc), 500)
    return web.json_response([m.to_record() for m in memories])


async def _search(request: web.Request) -> web.Response:
    receiver = request.query.get("receiver", "")
    if not receiver.strip():
        return _error("Missing receiver", 400)

    service = request.app[SERVICE_KEY]
    try:
        memories = await service.search_by_receiver(receiver)
    except StorageError as exc:
        return _error(str(exc), 500)
    logger.info("Receiver search %r matched %d memories", receiver, len(memories))
    return web.json_response([m.to_record() for m in memories])


async def _read_submission(request: web.Request) -> tuple[dict[str, Any], Attachment | None]:
    """Parse a JSON or multipart submission into fields and an optional image.

    Raises ``ValidationError`` on a malformed body.
    """
    if request.content_type == "multipart/form-data":
        form = await request.post()
        fields = {name: form.get(name) for name in _FORM_FIELDS}
        upload = form.get("image")
        if not isinstance(upload, web.FileField):
            return fields, None
        data = upload.file.read()
        if not data:
            return fields, None
        filename = upload.filename or "image"
        content_type = upload.content_type
        if not content_type or content_type == "application/octet-stream":
            content_type = detect_content_type(filename)
        return fields, Attachment(filename=filename, data=data, content_type=content_type)

    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise ValidationError("JSON body must be an object")
    return {name: body.get(name) for name in _FORM_FIELDS}, None


async def _submit(request: web.Request) -> web.Response:
    service = request.app[SERVICE_KEY]
    try:
        fields, image = await _read_submission(request)
        memory = await service.create(image=image, **fields)
    except ValidationError as exc:
        logger.warning("Submission rejected: %s", exc)
        return _error(str(exc), 400)
    except StorageError as exc:
        return _error(str(exc), 500)

    return web.json_response({"success": True, "data": [memory.to_record()]}, status=201)


def _blob_handler(blobs: LocalBlobStore):
    async def _serve_blob(request: web.Request) -> web.StreamResponse:
        key = request.match_info["key"]
        try:
            data = await blobs.read(key)
        except (FileNotFoundError, ValueError):
            raise web.HTTPNotFound() from None
        return web.Response(body=data, content_type=detect_content_type(key))

    return _serve_blob


def create_app(service: MemoryService | None = None) -> web.Application:
    """Build the aiohttp Application with routes."""
    service = service or MemoryService()
    app = web.Application(client_max_size=settings.max_upload_bytes)
    app[SERVICE_KEY] = service
    app.router.add_get("/health", _health)
    app.router.add_get("/api/messages", _list_messages)
    app.router.add_get("/api/search", _search)
    app.router.add_post("/api/submit", _submit)

    blobs = service.blobs
    if isinstance(blobs, LocalBlobStore):
        app.router.add_get("/blobs/{key:.+}", _blob_handler(blobs))
        logger.info("Serving local blobs from %s at /blobs/", blobs.root)

    return app


class ApiServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        service: MemoryService | None = None,
    ) -> None:
        self.host = host or settings.api_host
        self.port = port or settings.api_port
        self._service = service
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        app = create_app(self._service)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("API listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")
