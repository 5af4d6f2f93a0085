"""Search box state and the pure reducer that advances it.

Every change goes through ``reduce(state, action)`` so the type-ahead state
machine can be exercised without a UI or a network.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from src.geocoding.models import PlaceCandidate, new_session_token


class Phase(Enum):
    IDLE = "idle"
    TYPING = "typing"
    SUGGESTING = "suggesting"
    RESULTS_SHOWN = "results_shown"
    RETRIEVING = "retrieving"


@dataclass(frozen=True)
class SearchBoxState:
    """Snapshot of the location search box.

    Attributes:
        phase: Where the state machine currently is.
        query: Text shown in the input.
        suggestions: Candidates from the latest accepted suggest response.
        show_results: Whether the suggestion panel is visible.
        session_token: Groups suggest calls with the retrieve that ends them.
        seq: Number of the most recently issued request; older responses are stale.
    """

    phase: Phase = Phase.IDLE
    query: str = ""
    suggestions: tuple[PlaceCandidate, ...] = ()
    show_results: bool = False
    session_token: str = field(default_factory=new_session_token)
    seq: int = 0

    @property
    def top_suggestion(self) -> PlaceCandidate | None:
        return self.suggestions[0] if self.suggestions else None


# -- Actions -------------------------------------------------------------------


@dataclass(frozen=True)
class QueryTyped:
    text: str


@dataclass(frozen=True)
class SuggestionsCleared:
    pass


@dataclass(frozen=True)
class SuggestStarted:
    seq: int


@dataclass(frozen=True)
class SuggestSucceeded:
    seq: int
    suggestions: tuple[PlaceCandidate, ...]


@dataclass(frozen=True)
class SuggestFailed:
    seq: int


@dataclass(frozen=True)
class RetrieveStarted:
    seq: int


@dataclass(frozen=True)
class RetrieveSucceeded:
    display_name: str
    next_token: str


@dataclass(frozen=True)
class RetrieveFailed:
    pass


@dataclass(frozen=True)
class OutsideClicked:
    pass


Action = (
    QueryTyped
    | SuggestionsCleared
    | SuggestStarted
    | SuggestSucceeded
    | SuggestFailed
    | RetrieveStarted
    | RetrieveSucceeded
    | RetrieveFailed
    | OutsideClicked
)


def _hidden(state: SearchBoxState) -> SearchBoxState:
    return replace(state, phase=Phase.IDLE, suggestions=(), show_results=False)


def reduce(state: SearchBoxState, action: Action) -> SearchBoxState:  # noqa: PLR0911
    """Return the state that follows *action*."""
    match action:
        case QueryTyped(text=text):
            return replace(state, query=text, phase=Phase.TYPING)
        case SuggestionsCleared():
            return _hidden(state)
        case SuggestStarted(seq=seq):
            return replace(state, seq=seq, phase=Phase.SUGGESTING)
        case SuggestSucceeded(seq=seq, suggestions=suggestions):
            if seq != state.seq:
                return state
            if not suggestions:
                return _hidden(state)
            return replace(
                state,
                phase=Phase.RESULTS_SHOWN,
                suggestions=tuple(suggestions),
                show_results=True,
            )
        case SuggestFailed(seq=seq):
            return state if seq != state.seq else _hidden(state)
        case RetrieveStarted(seq=seq):
            return replace(state, seq=seq, phase=Phase.RETRIEVING)
        case RetrieveSucceeded(display_name=name, next_token=token):
            return replace(
                _hidden(state),
                query=name or state.query,
                session_token=token,
            )
        case RetrieveFailed():
            return replace(state, phase=Phase.IDLE, show_results=False)
        case OutsideClicked():
            phase = Phase.IDLE if state.phase is Phase.RESULTS_SHOWN else state.phase
            return replace(state, phase=phase, show_results=False)
    msg = f"Unknown action: {action!r}"
    raise TypeError(msg)
