"""Abstract signer / relay interfaces and the bounded broadcast helper.

The game layer depends on these ABCs, not on a concrete transport, the same
way the game controller depends on ``IClock`` rather than ``Clock``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from relaychess.core.errors import (
    BroadcastError,
    BroadcastTimeout,
    RelayChessError,
    SigningFailed,
)
from relaychess.relay.events import EventDraft, SignedEvent
from relaychess.relay.filters import Filter

_LOGGER = logging.getLogger(__name__)

DEFAULT_BROADCAST_TIMEOUT = 5.0


class ISigner(ABC):
    """Holds one identity's key and turns drafts into signed events."""

    @property
    @abstractmethod
    def pubkey(self) -> str: ...

    @abstractmethod
    async def sign(self, draft: EventDraft) -> SignedEvent:
        """Sign *draft* as :attr:`pubkey`."""


class IRelay(ABC):
    """Store-and-forward node (or pool of nodes)."""

    @abstractmethod
    async def publish(self, event: SignedEvent) -> None:
        """Accept *event*; raise on rejection or transport failure."""

    @abstractmethod
    async def query(self, filters: Sequence[Filter]) -> list[SignedEvent]:
        """One-shot fetch of stored events matching any of *filters*."""

    @abstractmethod
    def subscribe(self, filters: Sequence[Filter]) -> AsyncIterator[SignedEvent]:
        """Stored matches followed by live ones.

        The iterator may end when the relay connection drops; cancelling the
        consuming task (or ``aclose()``) tears the subscription down.
        """


async def sign_draft(signer: ISigner, draft: EventDraft) -> SignedEvent:
    """Sign *draft*, reporting any signer failure as :class:`SigningFailed`."""
    try:
        return await signer.sign(draft)
    except RelayChessError:
        raise
    except Exception as exc:
        _LOGGER.warning("Signing a kind %d draft failed: %s", draft.kind, exc)
        raise SigningFailed(f"Signing failed: {exc}") from exc


async def broadcast(
    relay: IRelay,
    event: SignedEvent,
    timeout: float = DEFAULT_BROADCAST_TIMEOUT,
) -> SignedEvent:
    """Publish *event* within *timeout* seconds.

    Raises:
        BroadcastTimeout: the budget elapsed.
        BroadcastError: the relay refused the event or the transport failed.
    """
    try:
        await asyncio.wait_for(relay.publish(event), timeout=timeout)
    except asyncio.TimeoutError:
        _LOGGER.warning("Broadcast of %s timed out after %.1fs", event.id, timeout)
        raise BroadcastTimeout(f"Broadcast timed out after {timeout:.1f}s") from None
    except (OSError, RuntimeError) as exc:
        _LOGGER.warning("Broadcast of %s failed: %s", event.id, exc)
        raise BroadcastError(f"Broadcast failed: {exc}") from exc
    _LOGGER.info("Published event %s (kind %d)", event.id, event.kind)
    return event


async def sign_and_broadcast(
    signer: ISigner,
    relay: IRelay,
    draft: EventDraft,
    timeout: float = DEFAULT_BROADCAST_TIMEOUT,
) -> SignedEvent:
    """Sign *draft* and publish it with :func:`broadcast`."""
    event = await sign_draft(signer, draft)
    return await broadcast(relay, event, timeout)
