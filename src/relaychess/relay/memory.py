"""In-process relay used for tests and local play."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence

from relaychess.relay.base import IRelay
from relaychess.relay.events import SignedEvent
from relaychess.relay.filters import Filter, FilterSet

_LOGGER = logging.getLogger(__name__)

_DROPPED = None  # queue sentinel: subscription torn down by the relay


class RelayRejected(RuntimeError):
    """The relay refused an event (bad id, duplicate of a newer version)."""


class MemoryRelay(IRelay):
    """Relay semantics without a network.

    * events are de-duplicated by id;
    * addressable kinds keep only the newest event per
      ``(kind, pubkey, d)``, ties going to the lower id;
    * subscriptions replay stored matches, then stream new ones until
      :meth:`drop_subscriptions` simulates a reconnect.
    """

    __slots__ = ("_events", "_subscribers", "offline", "verify_ids")

    def __init__(self, *, verify_ids: bool = True) -> None:
        self._events: dict[str, SignedEvent] = {}
        self._subscribers: list[tuple[FilterSet, asyncio.Queue[SignedEvent | None]]] = []
        self.offline = False
        self.verify_ids = verify_ids

    # ── IRelay implementation ────────────────────────────────────────────

    async def publish(self, event: SignedEvent) -> None:
        self._check_online()
        if self.verify_ids and not event.has_valid_id():
            raise RelayRejected(f"invalid: event id does not match content ({event.id})")
        if event.id in self._events:
            return
        if event.is_addressable and not self._replace_addressable(event):
            return

        self._events[event.id] = event
        for filter_set, queue in self._subscribers:
            if filter_set.matches(event):
                queue.put_nowait(event)

    async def query(self, filters: Sequence[Filter]) -> list[SignedEvent]:
        self._check_online()
        found: dict[str, SignedEvent] = {}
        for flt in filters:
            matches = sorted(
                (e for e in self._events.values() if flt.matches(e)),
                key=lambda e: e.sort_key,
                reverse=True,
            )
            if flt.limit is not None:
                matches = matches[: flt.limit]
            for event in matches:
                found[event.id] = event
        return sorted(found.values(), key=lambda e: e.sort_key, reverse=True)

    async def subscribe(self, filters: Sequence[Filter]) -> AsyncIterator[SignedEvent]:
        self._check_online()
        filter_set = FilterSet(list(filters))
        queue: asyncio.Queue[SignedEvent | None] = asyncio.Queue()
        entry = (filter_set, queue)
        self._subscribers.append(entry)
        try:
            for event in sorted(self._events.values(), key=lambda e: e.sort_key):
                if filter_set.matches(event):
                    yield event
            while True:
                item = await queue.get()
                if item is _DROPPED:
                    return
                yield item
        finally:
            self._subscribers.remove(entry)

    # ── Test / simulation helpers ────────────────────────────────────────

    @property
    def events(self) -> list[SignedEvent]:
        return sorted(self._events.values(), key=lambda e: e.sort_key)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def store(self, event: SignedEvent) -> None:
        """Insert *event* without notifying subscribers (late/backfilled data)."""
        self._events[event.id] = event

    def drop_subscriptions(self) -> None:
        """End every live subscription, as a relay reconnect would."""
        for _filter_set, queue in self._subscribers:
            queue.put_nowait(_DROPPED)

    # ── Internal ─────────────────────────────────────────────────────────

    def _check_online(self) -> None:
        if self.offline:
            raise ConnectionError("relay is offline")

    def _replace_addressable(self, event: SignedEvent) -> bool:
        """Drop older versions of an addressable event; False if *event* is older."""
        address = (event.kind, event.pubkey, event.tag_value("d") or "")
        for stored in list(self._events.values()):
            if not stored.is_addressable:
                continue
            if (stored.kind, stored.pubkey, stored.tag_value("d") or "") != address:
                continue
            newer = (stored.created_at, _neg(stored.id)) >= (event.created_at, _neg(event.id))
            if newer:
                _LOGGER.debug("Ignoring superseded addressable event %s", event.id)
                return False
            del self._events[stored.id]
        return True


def _neg(event_id: str) -> tuple[int, ...]:
    # Lower id wins a timestamp tie, so compare ids inverted.
    return tuple(-ord(ch) for ch in event_id)
