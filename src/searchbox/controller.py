"""SearchBoxController — debounced location type-ahead over the geocoder.

Keystrokes update the query immediately and (re)arm a quiet-period timer.
When the timer fires, one suggest call goes out with the text typed so far.
Choosing a suggestion resolves it with retrieve, moves the map there, and
starts a new geocoding session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from src.config import settings
from src.errors import NotFoundError, RemoteError
from src.geocoding.models import new_session_token
from src.searchbox.debounce import Debouncer
from src.searchbox.state import (
    Action,
    OutsideClicked,
    QueryTyped,
    RetrieveFailed,
    RetrieveStarted,
    RetrieveSucceeded,
    SearchBoxState,
    SuggestFailed,
    SuggestionsCleared,
    SuggestStarted,
    SuggestSucceeded,
    reduce,
)

if TYPE_CHECKING:
    from src.geocoding.client import GeocodingClient
    from src.geocoding.models import PlaceCandidate

logger = logging.getLogger(__name__)

# Callback signature: (longitude, latitude) -> None
LocationCallback = Callable[[float, float], None]


class SearchBoxController:
    """Drives the location search box state machine.

    Args:
        client: Geocoder used for suggest and retrieve.
        on_location_selected: Called with ``(lng, lat)`` after a successful retrieve.
        on_temporary_marker: Called with ``(lng, lat)`` to drop a marker there.
        debounce_seconds: Quiet period before a suggest fires (default from settings).
        token_factory: Produces session tokens.
    """

    def __init__(
        self,
        client: GeocodingClient,
        on_location_selected: LocationCallback | None = None,
        on_temporary_marker: LocationCallback | None = None,
        debounce_seconds: float | None = None,
        token_factory: Callable[[], str] = new_session_token,
    ) -> None:
        self._client = client
        self._on_location_selected = on_location_selected
        self._on_temporary_marker = on_temporary_marker
        self._token_factory = token_factory
        self._state = SearchBoxState(session_token=token_factory())
        delay = settings.debounce_seconds if debounce_seconds is None else debounce_seconds
        self._debouncer = Debouncer(delay, self._suggest)

    @property
    def state(self) -> SearchBoxState:
        return self._state

    def dispatch(self, action: Action) -> SearchBoxState:
        """Apply *action* and return the new state."""
        self._state = reduce(self._state, action)
        return self._state

    def _next_seq(self) -> int:
        return self._state.seq + 1

    # -- User input ------------------------------------------------------------

    def type(self, text: str) -> None:
        """A keystroke: show *text* now, suggest once typing pauses."""
        self.dispatch(QueryTyped(text))
        self._debouncer.arm()

    async def press_accept(self) -> None:
        """Enter key: pick the top suggestion, or search right away."""
        top = self._state.top_suggestion
        if self._state.show_results and top is not None:
            await self.select(top)
        elif self._state.query.strip():
            await self._debouncer.fire_now()

    def click_outside(self) -> None:
        """A pointer interaction outside the search box hides the results."""
        self.dispatch(OutsideClicked())

    async def select(self, candidate: PlaceCandidate) -> None:
        """Resolve *candidate* and move the map to it.

        A suggest still waiting on the quiet period is dropped.
        """
        self._debouncer.cancel()
        session = self._state.session_token
        self.dispatch(RetrieveStarted(self._next_seq()))
        try:
            place = await self._client.retrieve(candidate.id, session)
        except NotFoundError:
            logger.info("No location found for suggestion %s", candidate.id)
            self.dispatch(RetrieveFailed())
            return
        except RemoteError:
            logger.warning("Location retrieve failed for %s", candidate.id, exc_info=True)
            self.dispatch(RetrieveFailed())
            return

        if self._on_location_selected is not None:
            self._on_location_selected(place.longitude, place.latitude)
        if self._on_temporary_marker is not None:
            self._on_temporary_marker(place.longitude, place.latitude)
        self.dispatch(RetrieveSucceeded(place.display_name, self._token_factory()))

    # -- Effects ---------------------------------------------------------------

    async def _suggest(self) -> None:
        query = self._state.query
        if not query.strip():
            self.dispatch(SuggestionsCleared())
            return

        seq = self._next_seq()
        self.dispatch(SuggestStarted(seq))
        try:
            suggestions = await self._client.suggest(query, self._state.session_token)
        except RemoteError:
            logger.warning("Location suggest failed for %r", query, exc_info=True)
            self.dispatch(SuggestFailed(seq))
            return
        if seq != self._state.seq:
            logger.debug("Discarding stale suggestions for %r", query)
        self.dispatch(SuggestSucceeded(seq, tuple(suggestions)))

    async def drain(self) -> None:
        """Wait for debounced suggest calls that have already fired."""
        await self._debouncer.drain()

    def close(self) -> None:
        """Cancel a pending suggest."""
        self._debouncer.cancel()
