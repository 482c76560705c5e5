"""Signed relay events and the wire kinds used by relaychess."""

from __future__ import annotations

import hashlib
import json
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

# Move snapshot (full PGN per event).
CHESS_GAME_KIND = 64
# Challenge handshake; addressable range, keyed by author + ``d`` tag.
CHESS_CHALLENGE_KIND = 30064

Tags = tuple[tuple[str, ...], ...]


def freeze_tags(tags: Iterable[Sequence[str]]) -> Tags:
    return tuple(tuple(str(part) for part in tag) for tag in tags)


def compute_event_id(
    pubkey: str,
    created_at: int,
    kind: int,
    tags: Tags,
    content: str,
) -> str:
    """SHA-256 over the compact JSON serialization of the event fields."""
    payload = json.dumps(
        [0, pubkey, created_at, kind, [list(tag) for tag in tags], content],
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _first_value(tags: Tags, name: str) -> str | None:
    for tag in tags:
        if len(tag) >= 2 and tag[0] == name:
            return tag[1]
    return None


@dataclass(frozen=True, slots=True)
class EventDraft:
    """Unsigned event content handed to a signer."""

    kind: int
    content: str
    tags: Tags = ()
    created_at: int = field(default_factory=lambda: int(time.time()))

    def tag_value(self, name: str) -> str | None:
        return _first_value(self.tags, name)


@dataclass(frozen=True, slots=True)
class SignedEvent:
    """An immutable, identity-signed, timestamped record.

    Identity is ``id``; two events with the same id are the same event no
    matter how many relays delivered them.
    """

    id: str
    pubkey: str
    kind: int
    created_at: int
    content: str
    tags: Tags = ()
    sig: str = ""

    @property
    def sort_key(self) -> tuple[int, str]:
        """``(created_at, id)``; the id breaks timestamp ties."""
        return (self.created_at, self.id)

    def tag_value(self, name: str) -> str | None:
        """First value of the first tag called *name*."""
        return _first_value(self.tags, name)

    def tag_values(self, name: str) -> list[str]:
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]

    def has_valid_id(self) -> bool:
        expected = compute_event_id(
            self.pubkey, self.created_at, self.kind, self.tags, self.content
        )
        return expected == self.id

    @property
    def is_addressable(self) -> bool:
        return 30000 <= self.kind < 40000

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "kind": self.kind,
            "created_at": self.created_at,
            "content": self.content,
            "tags": [list(tag) for tag in self.tags],
            "sig": self.sig,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> SignedEvent:
        return cls(
            id=str(data["id"]),
            pubkey=str(data["pubkey"]),
            kind=int(data["kind"]),  # type: ignore[arg-type]
            created_at=int(data["created_at"]),  # type: ignore[arg-type]
            content=str(data.get("content", "")),
            tags=freeze_tags(data.get("tags", ())),  # type: ignore[arg-type]
            sig=str(data.get("sig", "")),
        )
