"""Subscription / query filters."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from relaychess.relay.events import SignedEvent


@dataclass(frozen=True, slots=True)
class Filter:
    """Matches events by id, author, kind, single-letter-or-named tags and time.

    ``tags`` maps a tag name (without ``#``) to the accepted values; an
    event matches when it carries at least one of them.
    """

    ids: tuple[str, ...] = ()
    authors: tuple[str, ...] = ()
    kinds: tuple[int, ...] = ()
    tags: tuple[tuple[str, tuple[str, ...]], ...] = ()
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    @classmethod
    def build(
        cls,
        *,
        ids: Iterable[str] = (),
        authors: Iterable[str] = (),
        kinds: Iterable[int] = (),
        tags: dict[str, Sequence[str]] | None = None,
        since: int | None = None,
        until: int | None = None,
        limit: int | None = None,
    ) -> Filter:
        frozen_tags = tuple(
            (name, tuple(values)) for name, values in sorted((tags or {}).items())
        )
        return cls(
            ids=tuple(ids),
            authors=tuple(authors),
            kinds=tuple(kinds),
            tags=frozen_tags,
            since=since,
            until=until,
            limit=limit,
        )

    def matches(self, event: SignedEvent) -> bool:
        if self.ids and event.id not in self.ids:
            return False
        if self.authors and event.pubkey not in self.authors:
            return False
        if self.kinds and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, values in self.tags:
            if not set(event.tag_values(name)) & set(values):
                return False
        return True


@dataclass(slots=True)
class FilterSet:
    """Several filters OR-ed together."""

    filters: list[Filter] = field(default_factory=list)

    def matches(self, event: SignedEvent) -> bool:
        return any(f.matches(event) for f in self.filters)
