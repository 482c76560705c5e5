"""Per-game event store and projection cache.

The repository is the only place that calls the projector.  Pushed events,
polled events and this client's own broadcasts all land in the same store,
so whichever path delivers an event first, the projected state is the same.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from relaychess.config import Settings, get_settings
from relaychess.core.errors import NotFound, Outcome, QueryFailed
from relaychess.game.projector import GameProjector
from relaychess.game.state import CanonicalGameState
from relaychess.relay.base import IRelay
from relaychess.relay.events import CHESS_CHALLENGE_KIND, CHESS_GAME_KIND, SignedEvent
from relaychess.relay.filters import Filter

_LOGGER = logging.getLogger(__name__)


def game_filters(
    game_id: str,
    *,
    game_limit: int = 20,
    challenge_limit: int = 10,
) -> list[Filter]:
    """Snapshots and challenge events addressed to *game_id*."""
    return [
        Filter.build(kinds=[CHESS_GAME_KIND], tags={"d": [game_id]}, limit=game_limit),
        Filter.build(kinds=[CHESS_CHALLENGE_KIND], tags={"d": [game_id]}, limit=challenge_limit),
    ]


class GameRepository:
    """Caches projections keyed by game identifier.

    ``_adopted`` remembers the last state handed out per game; it seeds the
    next projection so a relay that loses newer snapshots cannot move this
    client backwards.
    """

    __slots__ = (
        "_relay",
        "_projector",
        "_events",
        "_adopted",
        "_cache",
        "_game_limit",
        "_challenge_limit",
        "_listing_limit",
    )

    def __init__(
        self,
        relay: IRelay,
        projector: GameProjector | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._relay = relay
        self._projector = projector or GameProjector(settings.color_scheme)
        self._events: dict[str, dict[str, SignedEvent]] = {}
        self._adopted: dict[str, CanonicalGameState] = {}
        self._cache: dict[str, CanonicalGameState | None] = {}
        self._game_limit = settings.game_query_limit
        self._challenge_limit = settings.challenge_query_limit
        self._listing_limit = settings.listing_limit

    @property
    def relay(self) -> IRelay:
        return self._relay

    @property
    def projector(self) -> GameProjector:
        return self._projector

    # ── Store ────────────────────────────────────────────────────────────

    def ingest(self, game_id: str, events: Iterable[SignedEvent]) -> int:
        """Add events to *game_id*'s store; returns how many were new."""
        store = self._events.setdefault(game_id, {})
        added = 0
        for event in events:
            if event.id in store:
                continue
            store[event.id] = event
            added += 1
        if added:
            self.invalidate(game_id)
        return added

    def invalidate(self, game_id: str) -> None:
        """Drop the cached projection; the next read re-runs the projector."""
        self._cache.pop(game_id, None)

    def forget(self, game_id: str) -> None:
        """Release everything held for *game_id* (session teardown)."""
        self._events.pop(game_id, None)
        self._adopted.pop(game_id, None)
        self._cache.pop(game_id, None)

    def events(self, game_id: str) -> list[SignedEvent]:
        return sorted(self._events.get(game_id, {}).values(), key=lambda e: e.sort_key)

    # ── Projection ───────────────────────────────────────────────────────

    def current(self, game_id: str) -> CanonicalGameState | None:
        """Project from the local store (cached)."""
        if game_id in self._cache:
            return self._cache[game_id]
        state = self._projector.project(
            game_id,
            self._events.get(game_id, {}).values(),
            previous=self._adopted.get(game_id),
        )
        self._cache[game_id] = state
        if state is not None:
            self._adopted[game_id] = state
        return state

    def adopt(self, state: CanonicalGameState) -> None:
        """Record a locally produced state (optimistic move) as adopted."""
        self._adopted[state.game_id] = state
        self._cache[state.game_id] = state

    async def refresh(self, game_id: str) -> CanonicalGameState | None:
        """Pull *game_id*'s events from the relay, then project."""
        events = await self._relay.query(
            game_filters(
                game_id,
                game_limit=self._game_limit,
                challenge_limit=self._challenge_limit,
            )
        )
        self.ingest(game_id, events)
        return self.current(game_id)

    async def load(self, game_id: str) -> Outcome[CanonicalGameState]:
        """Refresh and return the canonical state.

        When the relay is unreachable the locally stored events are used;
        ``QueryFailed`` is returned only if they yield nothing either.
        """
        try:
            state = await self.refresh(game_id)
        except (OSError, RuntimeError) as exc:
            _LOGGER.warning("Query for game %s failed: %s", game_id, exc)
            state = self.current(game_id)
            if state is None:
                return Outcome.failure(QueryFailed(f"Relay query failed: {exc}"))
        if state is None:
            return Outcome.failure(NotFound(f"No game state for {game_id}"))
        return Outcome.success(state)

    # ── Listings ─────────────────────────────────────────────────────────

    async def user_games(
        self,
        pubkey: str,
        *,
        limit: int | None = None,
    ) -> Outcome[list[CanonicalGameState]]:
        """Latest state of every game where *pubkey* is a participant."""
        flt = Filter.build(
            kinds=[CHESS_GAME_KIND],
            tags={"p": [pubkey]},
            limit=limit or self._listing_limit,
        )
        return await self._listing(flt)

    async def recent_games(self, *, limit: int | None = None) -> Outcome[list[CanonicalGameState]]:
        """Latest state of recently updated games, newest first."""
        flt = Filter.build(kinds=[CHESS_GAME_KIND], limit=limit or self._listing_limit)
        return await self._listing(flt)

    async def _listing(self, flt: Filter) -> Outcome[list[CanonicalGameState]]:
        try:
            events = await self._relay.query([flt])
        except (OSError, RuntimeError) as exc:
            _LOGGER.warning("Listing query failed: %s", exc)
            return Outcome.failure(QueryFailed(f"Relay query failed: {exc}"))

        grouped: dict[str, list[SignedEvent]] = {}
        for event in events:
            game_id = event.tag_value("d")
            if game_id:
                grouped.setdefault(game_id, []).append(event)

        states: list[CanonicalGameState] = []
        for game_id, group in grouped.items():
            state = self._projector.project(game_id, group)
            if state is not None:
                states.append(state)
        states.sort(key=lambda s: s.sort_key, reverse=True)
        return Outcome.success(states)
