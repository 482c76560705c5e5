"""Shared pytest fixtures used across the test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from relaychess.config import Settings
from relaychess.core.enums import GameResult
from relaychess.core.notation import decode_game, encode_game
from relaychess.relay.base import ISigner
from relaychess.relay.events import (
    CHESS_GAME_KIND,
    EventDraft,
    SignedEvent,
    compute_event_id,
    freeze_tags,
)
from relaychess.relay.memory import MemoryRelay

ALICE = "a1" * 32
BOB = "b2" * 32
CAROL = "c3" * 32


class FakeSigner(ISigner):
    """Computes real event ids; the signature is a placeholder."""

    def __init__(self, pubkey: str) -> None:
        self._pubkey = pubkey
        self.signed: list[SignedEvent] = []

    @property
    def pubkey(self) -> str:
        return self._pubkey

    async def sign(self, draft: EventDraft) -> SignedEvent:
        return self.sign_now(draft)

    def sign_now(self, draft: EventDraft) -> SignedEvent:
        event = SignedEvent(
            id=compute_event_id(
                self._pubkey, draft.created_at, draft.kind, draft.tags, draft.content
            ),
            pubkey=self._pubkey,
            kind=draft.kind,
            created_at=draft.created_at,
            content=draft.content,
            tags=draft.tags,
            sig="0" * 128,
        )
        self.signed.append(event)
        return event


class RefusingSigner(FakeSigner):
    """Holds a key but refuses every signing request, like a locked wallet."""

    async def sign(self, draft: EventDraft) -> SignedEvent:
        raise RuntimeError("signer is locked")


class FakeTime:
    """Manually advanced monotonic time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


SnapshotFactory = Callable[..., SignedEvent]


@pytest.fixture
def relay() -> MemoryRelay:
    return MemoryRelay()


@pytest.fixture
def alice() -> FakeSigner:
    return FakeSigner(ALICE)


@pytest.fixture
def bob() -> FakeSigner:
    return FakeSigner(BOB)


@pytest.fixture
def carol() -> FakeSigner:
    return FakeSigner(CAROL)


@pytest.fixture
def locked_alice() -> RefusingSigner:
    return RefusingSigner(ALICE)


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        broadcast_timeout=0.2,
        poll_interval=0.05,
        resubscribe_delay=0.01,
    )


@pytest.fixture
def make_snapshot() -> SnapshotFactory:
    """Build a signed move-snapshot event from a SAN list."""

    def _make(
        signer: FakeSigner,
        game_id: str,
        sans: Sequence[str],
        *,
        white: str = ALICE,
        black: str = BOB,
        created_at: int = 1_700_000_000,
        result: GameResult = GameResult.IN_PROGRESS,
        time_control: str = "300",
        content: str | None = None,
    ) -> SignedEvent:
        if content is None:
            board = decode_game("*").board
            for san in sans:
                board.push_san(san)
            content = encode_game(
                board,
                {"White": white, "Black": black, "TimeControl": time_control},
                result,
            )
        tags = freeze_tags(
            [
                ["d", game_id],
                ["white", white],
                ["black", black],
                ["p", white],
                ["p", black],
            ]
        )
        draft = EventDraft(
            kind=CHESS_GAME_KIND, content=content, tags=tags, created_at=created_at
        )
        return signer.sign_now(draft)

    return _make
