"""Mapbox Search Box API client — suggest and retrieve.

A lookup is two calls grouped by a session token: ``suggest`` ranks
candidates for partial text, ``retrieve`` resolves one candidate id to a
coordinate. Mapbox bills one session per suggest…retrieve cycle, so callers
must reuse the token while the user types and rotate it after a retrieve.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from src.config import settings
from src.errors import NotFoundError, RemoteError
from src.geocoding.models import PlaceCandidate, ResolvedPlace

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5


class GeocodingClient:
    """Async wrapper around the two Search Box endpoints.

    Args:
        access_token: Mapbox token (default from settings).
        base_url: Search Box API root (default from settings).
        limit: Max suggestions per call, capped at 5.
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self._token = access_token if access_token is not None else settings.mapbox_access_token
        self._base_url = (base_url or settings.mapbox_search_url).rstrip("/")
        self._limit = min(limit or settings.suggest_limit, MAX_SUGGESTIONS)
        self._timeout = timeout or settings.geocoding_timeout

    def _params(self, session: str, **extra: Any) -> dict[str, Any]:
        params: dict[str, Any] = {"session_token": session, "access_token": self._token}
        if settings.geocoding_language:
            params["language"] = settings.geocoding_language
        params.update(extra)
        return params

    async def _get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise RemoteError(f"Geocoding request failed: {exc}") from exc

        if resp.status_code != 200:
            raise RemoteError(f"Geocoding API returned {resp.status_code}: {resp.text[:200]}")
        try:
            data = resp.json()
        except ValueError as exc:
            raise RemoteError("Geocoding API returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise RemoteError("Geocoding API returned an unexpected payload")
        return data

    async def suggest(self, query: str, session: str) -> list[PlaceCandidate]:
        """Ranked candidates for *query*; ``[]`` without a request when blank."""
        if not query.strip():
            return []

        data = await self._get(
            f"{self._base_url}/suggest",
            self._params(session, q=query, limit=self._limit),
        )
        candidates = []
        for raw in data.get("suggestions") or []:
            try:
                candidates.append(PlaceCandidate.model_validate(raw))
            except PydanticValidationError:
                logger.debug("Skipping malformed suggestion: %s", raw)
        return candidates[: self._limit]

    async def retrieve(self, candidate_id: str, session: str) -> ResolvedPlace:
        """Resolve a suggestion id to a coordinate and display name."""
        data = await self._get(
            f"{self._base_url}/retrieve/{candidate_id}",
            self._params(session),
        )
        features = data.get("features") or []
        if not features:
            raise NotFoundError(f"No feature for candidate {candidate_id}")

        feature = features[0]
        props = feature.get("properties") or {}
        coords = (feature.get("geometry") or {}).get("coordinates") or []
        try:
            lng, lat = float(coords[0]), float(coords[1])
        except (IndexError, TypeError, ValueError) as exc:
            raise RemoteError(f"Feature {candidate_id} has no usable coordinates") from exc

        name = props.get("name_preferred") or props.get("name") or props.get("full_address") or ""
        return ResolvedPlace(longitude=lng, latitude=lat, display_name=name)
