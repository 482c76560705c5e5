"""Live Update Channel: push and poll producers feeding one merge stage.

Producers only put items on a shared :class:`asyncio.Queue`: a pushed
:class:`SignedEvent`, or :data:`PULL` asking the merger to refresh from the
relay.  The merger is the only consumer, so every path into the repository
is serialized through it.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from contextlib import aclosing

from relaychess.config import Settings, get_settings
from relaychess.game.repository import GameRepository
from relaychess.game.state import CanonicalGameState
from relaychess.relay.base import IRelay
from relaychess.relay.events import CHESS_GAME_KIND, SignedEvent
from relaychess.relay.filters import Filter

_LOGGER = logging.getLogger(__name__)

# Queue item asking the merger to re-query the relay.
PULL = None

UpdateItem = SignedEvent | None
UpdateQueue = asyncio.Queue[UpdateItem]
UpdateCallback = Callable[[CanonicalGameState], object]


class IProducer(ABC):
    """Source of update items for one game."""

    @abstractmethod
    async def run(self, queue: UpdateQueue) -> None:
        """Feed *queue* until cancelled."""


class PushProducer(IProducer):
    """Forwards snapshot events from a relay subscription.

    When the subscription ends (a relay reconnect) it subscribes again after
    *resubscribe_delay* seconds.
    """

    __slots__ = ("_relay", "_game_id", "_resubscribe_delay")

    def __init__(self, relay: IRelay, game_id: str, *, resubscribe_delay: float = 1.0) -> None:
        self._relay = relay
        self._game_id = game_id
        self._resubscribe_delay = resubscribe_delay

    @property
    def filters(self) -> list[Filter]:
        return [Filter.build(kinds=[CHESS_GAME_KIND], tags={"d": [self._game_id]})]

    async def run(self, queue: UpdateQueue) -> None:
        while True:
            try:
                async with aclosing(self._relay.subscribe(self.filters)) as stream:  # type: ignore[type-var]
                    async for event in stream:
                        await queue.put(event)
            except (OSError, RuntimeError) as exc:
                _LOGGER.warning("Subscription for %s failed: %s", self._game_id, exc)
            _LOGGER.debug("Subscription for %s ended, resubscribing", self._game_id)
            await asyncio.sleep(self._resubscribe_delay)


class PollProducer(IProducer):
    """Emits a pull request every *interval* seconds."""

    __slots__ = ("_interval",)

    def __init__(self, interval: float = 3.0) -> None:
        self._interval = interval

    async def run(self, queue: UpdateQueue) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await queue.put(PULL)


class UpdateMerger:
    """Turns update items into delivered states.

    A state is delivered only when its PGN text differs from the last text
    delivered (or marked delivered) for the game.
    """

    __slots__ = ("_repository", "_game_id", "_on_update", "_last_pgn")

    def __init__(
        self,
        repository: GameRepository,
        game_id: str,
        on_update: UpdateCallback,
    ) -> None:
        self._repository = repository
        self._game_id = game_id
        self._on_update = on_update
        self._last_pgn: str | None = None

    @property
    def last_delivered(self) -> str | None:
        return self._last_pgn

    def mark_delivered(self, pgn: str) -> None:
        """Treat *pgn* as already seen (e.g. this client's own move)."""
        self._last_pgn = pgn

    async def handle(self, item: UpdateItem) -> CanonicalGameState | None:
        if item is PULL:
            try:
                state = await self._repository.refresh(self._game_id)
            except (OSError, RuntimeError) as exc:
                _LOGGER.warning("Poll for %s failed: %s", self._game_id, exc)
                return None
        else:
            self._repository.ingest(self._game_id, [item])
            state = self._repository.current(self._game_id)

        if state is None or state.pgn == self._last_pgn:
            return None
        self._last_pgn = state.pgn
        self._on_update(state)
        return state

    async def run(self, queue: UpdateQueue) -> None:
        while True:
            item = await queue.get()
            try:
                await self.handle(item)
            except Exception:
                _LOGGER.exception("Update for %s failed", self._game_id)
            finally:
                queue.task_done()


class LiveUpdateChannel:
    """Keeps one game's state current while a session is open.

    Args:
        game_id: Game to follow.
        repository: Store the merger ingests into.
        on_update: Called with each newly delivered state.
        producers: Defaults to a push and a poll producer built from
            *settings*; pass any subset to swap or omit one.
    """

    __slots__ = ("_game_id", "_queue", "_merger", "_producers", "_tasks")

    def __init__(
        self,
        game_id: str,
        repository: GameRepository,
        on_update: UpdateCallback,
        *,
        producers: Sequence[IProducer] | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        if producers is None:
            producers = (
                PushProducer(
                    repository.relay,
                    game_id,
                    resubscribe_delay=settings.resubscribe_delay,
                ),
                PollProducer(settings.poll_interval),
            )
        self._game_id = game_id
        self._queue: UpdateQueue = asyncio.Queue()
        self._merger = UpdateMerger(repository, game_id, on_update)
        self._producers = tuple(producers)
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def game_id(self) -> str:
        return self._game_id

    @property
    def merger(self) -> UpdateMerger:
        return self._merger

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def mark_delivered(self, pgn: str) -> None:
        self._merger.mark_delivered(pgn)

    def start(self, initial_pgn: str | None = None) -> None:
        """Spawn the merge task and one task per producer."""
        if self._tasks:
            return
        if initial_pgn is not None:
            self._merger.mark_delivered(initial_pgn)
        self._tasks.append(
            asyncio.create_task(self._merger.run(self._queue), name=f"merge:{self._game_id}")
        )
        for producer in self._producers:
            self._tasks.append(
                asyncio.create_task(
                    producer.run(self._queue),
                    name=f"{type(producer).__name__}:{self._game_id}",
                )
            )
        _LOGGER.debug("Live updates started for %s", self._game_id)

    async def aclose(self) -> None:
        """Cancel the producers and the merge task and wait for them."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            _LOGGER.debug("Live updates stopped for %s", self._game_id)
