"""Relay boundary: signed events, filters, signer/relay interfaces."""

from relaychess.relay.base import (
    DEFAULT_BROADCAST_TIMEOUT,
    IRelay,
    ISigner,
    broadcast,
    sign_and_broadcast,
    sign_draft,
)
from relaychess.relay.events import (
    CHESS_CHALLENGE_KIND,
    CHESS_GAME_KIND,
    EventDraft,
    SignedEvent,
    compute_event_id,
    freeze_tags,
)
from relaychess.relay.filters import Filter, FilterSet
from relaychess.relay.memory import MemoryRelay, RelayRejected

__all__ = [
    "CHESS_CHALLENGE_KIND",
    "CHESS_GAME_KIND",
    "DEFAULT_BROADCAST_TIMEOUT",
    "EventDraft",
    "Filter",
    "FilterSet",
    "IRelay",
    "ISigner",
    "MemoryRelay",
    "RelayRejected",
    "SignedEvent",
    "broadcast",
    "compute_event_id",
    "freeze_tags",
    "sign_and_broadcast",
    "sign_draft",
]
