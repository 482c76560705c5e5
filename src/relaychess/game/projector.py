"""Game State Projector: a set of signed events -> one canonical state.

Every snapshot carries the whole game, so only the winning snapshot needs
decoding; missing intermediate events do not matter.  Snapshots are folded
in ``(created_at, id)`` order.  A candidate replaces the adopted state when
it is at least as long and newer, so a later but shorter history (a stale or
corrupt snapshot) never wins.  The fold is deterministic for a given event
set, regardless of arrival order, and re-running it on its own output is a
no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from relaychess.core.colors import ColorScheme
from relaychess.core.enums import ChallengeStatus, GameResult
from relaychess.core.errors import DecodeFailure, StaleSnapshot
from relaychess.core.notation import decode_game
from relaychess.core.rules import terminal_result
from relaychess.game.challenge import ChallengeMachine, state_from_acceptance
from relaychess.game.interfaces import DEFAULT_TIME_CONTROL, TimeControl
from relaychess.game.state import CanonicalGameState
from relaychess.relay.events import CHESS_CHALLENGE_KIND, CHESS_GAME_KIND, SignedEvent

_LOGGER = logging.getLogger(__name__)

_UNKNOWN_PLAYER = {"", "?"}


def _identity(tag_value: str | None, header_value: str | None) -> str:
    for value in (tag_value, header_value):
        if value and value not in _UNKNOWN_PLAYER:
            return value
    return ""


def check_successor(
    adopted: CanonicalGameState,
    candidate: CanonicalGameState,
) -> None:
    """Raise unless *candidate* may replace *adopted*.

    Raises:
        DecodeFailure: *candidate* names other players or rewrites a
            finished game.
        StaleSnapshot: *candidate* is shorter, or not newer at equal length.
    """
    if (candidate.white, candidate.black) != (adopted.white, adopted.black):
        raise DecodeFailure("snapshot changes the players")
    if adopted.is_game_over and (
        candidate.result != adopted.result or candidate.ply_count != adopted.ply_count
    ):
        raise DecodeFailure("snapshot rewrites a finished game")
    if candidate.ply_count < adopted.ply_count:
        raise StaleSnapshot(
            f"snapshot has {candidate.ply_count} plies, adopted has {adopted.ply_count}"
        )
    if (candidate.ply_count, candidate.sort_key) <= (adopted.ply_count, adopted.sort_key):
        raise StaleSnapshot("snapshot is not newer than the adopted state")


def is_regression(current: CanonicalGameState | None, candidate: CanonicalGameState) -> bool:
    """True if adopting *candidate* would move *current* backwards."""
    if current is None:
        return False
    try:
        check_successor(current, candidate)
    except (DecodeFailure, StaleSnapshot):
        return True
    return False


class GameProjector:
    """Deterministic projection of one game's events.

    Args:
        scheme: Color scheme used to recompute an accepted challenge's
            colors; all clients of one deployment must agree on it.
    """

    __slots__ = ("_scheme",)

    def __init__(self, scheme: ColorScheme = ColorScheme.DIGEST) -> None:
        self._scheme = scheme

    @property
    def scheme(self) -> ColorScheme:
        return self._scheme

    def project(
        self,
        game_id: str,
        events: Iterable[SignedEvent],
        previous: CanonicalGameState | None = None,
    ) -> CanonicalGameState | None:
        """Return the canonical state for *game_id*, or ``None`` if none exists.

        Args:
            game_id: Identifier carried in the ``d`` tag.
            events: Any mix of snapshot and challenge events; duplicates and
                events for other games are ignored.
            previous: State this client adopted earlier.  It seeds the fold
                so that a relay returning only a stale snapshot cannot move
                the client backwards.
        """
        unique = {event.id: event for event in events}
        snapshots = sorted(
            (
                e
                for e in unique.values()
                if e.kind == CHESS_GAME_KIND and e.tag_value("d") == game_id
            ),
            key=lambda e: e.sort_key,
        )
        challenge_events = [
            e for e in unique.values() if e.kind == CHESS_CHALLENGE_KIND
        ]

        base = self.challenge_state(game_id, challenge_events)
        adopted = previous
        for event in snapshots:
            if adopted is not None and event.id == adopted.source_event_id:
                continue
            reference = adopted or base
            fallback_tc = reference.time_control if reference is not None else None
            try:
                candidate = self.snapshot_state(game_id, event, fallback_tc)
                # The accepted challenge fixes the players before any snapshot does.
                if reference is not None:
                    check_successor(reference, candidate)
            except (DecodeFailure, StaleSnapshot) as exc:
                _LOGGER.debug("Discarding snapshot %s for %s: %s", event.id, game_id, exc)
                continue
            adopted = candidate

        if adopted is not None:
            return adopted
        return base

    def snapshot_state(
        self,
        game_id: str,
        event: SignedEvent,
        fallback_time_control: TimeControl | None = None,
    ) -> CanonicalGameState:
        """Decode one move-snapshot event.

        Raises:
            DecodeFailure: bad notation, unknown players, or an author who
                is not one of the players.
        """
        decoded = decode_game(event.content)
        white = _identity(event.tag_value("white"), decoded.headers.get("White"))
        black = _identity(event.tag_value("black"), decoded.headers.get("Black"))
        if not white or not black:
            raise DecodeFailure(f"snapshot {event.id} does not name both players")
        if event.pubkey not in (white, black):
            raise DecodeFailure(f"snapshot {event.id} is not authored by a player")

        time_control = (
            TimeControl.from_header(decoded.headers.get("TimeControl"))
            or fallback_time_control
            or DEFAULT_TIME_CONTROL
        )
        result = decoded.result
        if result == GameResult.IN_PROGRESS:
            result = terminal_result(decoded.board)

        return CanonicalGameState(
            game_id=game_id,
            white=white,
            black=black,
            pgn=event.content,
            moves=tuple(decoded.moves),
            time_control=time_control,
            result=result,
            source_event_id=event.id,
            source_timestamp=event.created_at,
        )

    def challenge_state(
        self,
        game_id: str,
        events: Iterable[SignedEvent],
    ) -> CanonicalGameState | None:
        """Empty-history state from an accepted challenge, if any.

        Uses the full handshake when the origin event is known; otherwise an
        acceptance alone is enough because it repeats the challenge data.
        """
        candidates = [e for e in events if e.tag_value("d") == game_id]
        machine = ChallengeMachine.from_events(game_id, candidates)
        if machine is not None:
            return machine.initial_state(self._scheme)

        acceptances = sorted(
            (e for e in candidates if e.tag_value("status") == ChallengeStatus.ACCEPTED.value),
            key=lambda e: e.sort_key,
        )
        for event in acceptances:
            try:
                return state_from_acceptance(event, self._scheme)
            except DecodeFailure as exc:
                _LOGGER.debug("Discarding acceptance %s: %s", event.id, exc)
        return None
