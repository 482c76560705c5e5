"""GameSession: the move submission pipeline for one game.

Validates a move against the legality oracle, advances the local state
optimistically, signs the full history as a new snapshot and broadcasts it.
Remote states from the live channel go through :meth:`GameSession.apply_remote`,
which refuses anything that would move the game backwards.
Emits events via simple callbacks so a UI / tests can subscribe.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import chess

from relaychess.config import Settings, get_settings
from relaychess.core.enums import Color, GameResult
from relaychess.core.errors import (
    BroadcastError,
    DecodeFailure,
    GameAlreadyOver,
    IllegalMove,
    NotAuthenticated,
    NotAuthorized,
    NotFound,
    NotYourTurn,
    Outcome,
    RelayChessError,
    SigningFailed,
    SubmissionInFlight,
)
from relaychess.core.notation import encode_game, history_sans
from relaychess.core.rules import apply_move, terminal_result
from relaychess.game.clock import Clock
from relaychess.game.live import LiveUpdateChannel
from relaychess.game.projector import is_regression
from relaychess.game.repository import GameRepository
from relaychess.game.state import CanonicalGameState
from relaychess.relay.base import ISigner, broadcast, sign_draft
from relaychess.relay.events import CHESS_GAME_KIND, EventDraft, SignedEvent, freeze_tags

_LOGGER = logging.getLogger(__name__)

# ── Event definitions ────────────────────────────────────────────────────────

StateCallback = Callable[[CanonicalGameState], None]
PublishFailedCallback = Callable[[BroadcastError], None]
GameOverCallback = Callable[[GameResult], None]
FlagCallback = Callable[[Color], None]


@dataclass
class GameEvents:
    """Observable callbacks. Multiple handlers per event."""

    on_state_changed: list[StateCallback] = field(default_factory=list)
    on_publish_failed: list[PublishFailedCallback] = field(default_factory=list)
    on_game_over: list[GameOverCallback] = field(default_factory=list)
    on_flag_fallen: list[FlagCallback] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MoveOutcome:
    """Result of a submission.

    ``accepted`` means the local state advanced; ``published`` that the
    snapshot reached the relay.  An accepted but unpublished move carries a
    :class:`BroadcastError` and can be retried with
    :meth:`GameSession.retry_publish`.
    """

    accepted: bool
    state: CanonicalGameState | None = None
    error: RelayChessError | None = None
    published: bool = False

    @classmethod
    def rejected(cls, error: RelayChessError, state: CanonicalGameState | None = None) -> MoveOutcome:
        return cls(accepted=False, state=state, error=error)

    @property
    def ok(self) -> bool:
        return self.accepted and self.error is None


def snapshot_tags(state: CanonicalGameState, result: GameResult) -> list[list[str]]:
    """Tags of a move-snapshot event."""
    if result.is_terminal:
        alt = f"Chess game {state.game_id} finished"
    else:
        alt = f"Chess game {state.game_id}"
    return [
        ["d", state.game_id],
        ["white", state.white],
        ["black", state.black],
        ["p", state.white],
        ["p", state.black],
        ["alt", alt],
    ]


# ── Session ──────────────────────────────────────────────────────────────────


class GameSession:
    """One open game as seen by one identity (player or spectator).

    Single-threaded: every method is meant to run on the event loop thread.
    ``is_publishing`` gates submissions; only broadcast awaits suspend.
    """

    __slots__ = (
        "_game_id",
        "_repository",
        "_signer",
        "_settings",
        "_state",
        "_pending",
        "_publishing",
        "_clock",
        "_now",
        "_live",
        "events",
    )

    def __init__(
        self,
        game_id: str,
        repository: GameRepository,
        signer: ISigner | None = None,
        settings: Settings | None = None,
        *,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self._game_id = game_id
        self._repository = repository
        self._signer = signer
        self._settings = settings or get_settings()
        self._state: CanonicalGameState | None = None
        self._pending: SignedEvent | None = None
        self._publishing = False
        self._clock: Clock | None = None
        self._now = now
        self._live: LiveUpdateChannel | None = None
        self.events = GameEvents()

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def game_id(self) -> str:
        return self._game_id

    @property
    def state(self) -> CanonicalGameState | None:
        return self._state

    @property
    def clock(self) -> Clock | None:
        return self._clock

    @property
    def live(self) -> LiveUpdateChannel | None:
        return self._live

    @property
    def is_publishing(self) -> bool:
        return self._publishing

    @property
    def pending_event(self) -> SignedEvent | None:
        """Signed snapshot whose broadcast failed, kept for a retry."""
        return self._pending

    @property
    def player_color(self) -> Color | None:
        if self._signer is None or self._state is None:
            return None
        return self._state.color_of(self._signer.pubkey)

    @property
    def is_spectator(self) -> bool:
        return self.player_color is None

    @property
    def is_my_turn(self) -> bool:
        color = self.player_color
        if color is None or self._state is None or self._state.is_game_over:
            return False
        return self._state.side_to_move == color

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def open(self, *, live: bool = False) -> Outcome[CanonicalGameState]:
        """Load the canonical state; optionally start live updates."""
        outcome = await self._repository.load(self._game_id)
        if not outcome.ok:
            return outcome
        state = outcome.unwrap()
        if self._state is None or not is_regression(self._state, state):
            self._set_state(state)
        if live:
            self.start_live()
        return Outcome.success(self._state)  # type: ignore[arg-type]

    def start_live(self, channel: LiveUpdateChannel | None = None) -> LiveUpdateChannel:
        """Attach (and start) a live channel feeding :meth:`apply_remote`."""
        if self._live is None:
            self._live = channel or LiveUpdateChannel(
                self._game_id,
                self._repository,
                self.apply_remote,
                settings=self._settings,
            )
        self._live.start(self._state.pgn if self._state is not None else None)
        return self._live

    async def close(self) -> None:
        """Stop live updates and the clock."""
        if self._live is not None:
            await self._live.aclose()
            self._live = None
        if self._clock is not None:
            self._clock.stop()

    # ── Commands ─────────────────────────────────────────────────────────

    async def submit_move(
        self,
        from_sq: str,
        to_sq: str,
        promotion: str | None = None,
    ) -> MoveOutcome:
        """Validate, apply, sign and broadcast one move."""
        try:
            state, signer, _ = self._actor(require_turn=True)
        except RelayChessError as exc:
            return MoveOutcome.rejected(exc, self._state)

        try:
            board, san = apply_move(state.board(), from_sq, to_sq, promotion)
        except (IllegalMove, DecodeFailure) as exc:
            return MoveOutcome.rejected(exc, state)

        _LOGGER.debug("Game %s: %s plays %s", self._game_id, state.side_to_move, san)
        return await self._commit(state, signer, board, terminal_result(board))

    async def resign(self) -> MoveOutcome:
        """Publish the current history with a loss for this player."""
        try:
            state, signer, color = self._actor(require_turn=False)
        except RelayChessError as exc:
            return MoveOutcome.rejected(exc, self._state)

        return await self._commit(
            state,
            signer,
            state.board(),
            GameResult.loss_for(color),
            termination="normal",
        )

    async def report_timeout(self, color: Color) -> MoveOutcome:
        """Publish a loss on time for *color*; only its opponent may do so."""
        try:
            state, signer, own_color = self._actor(require_turn=False)
        except RelayChessError as exc:
            return MoveOutcome.rejected(exc, self._state)
        if color == own_color:
            return MoveOutcome.rejected(
                NotAuthorized("Only the opponent reports a flag fall"), state
            )

        return await self._commit(
            state,
            signer,
            state.board(),
            GameResult.loss_for(color),
            termination="time forfeit",
        )

    async def retry_publish(self) -> MoveOutcome:
        """Re-broadcast the snapshot whose last broadcast failed."""
        if self._pending is None:
            return MoveOutcome.rejected(NotFound("Nothing to publish"), self._state)
        if self._publishing:
            return MoveOutcome.rejected(SubmissionInFlight("Submission in flight"), self._state)

        event = self._pending
        self._publishing = True
        try:
            await broadcast(self._repository.relay, event, self._settings.broadcast_timeout)
        except BroadcastError as exc:
            self._emit_publish_failed(exc)
            return MoveOutcome(accepted=True, state=self._state, error=exc)
        finally:
            self._publishing = False

        self._on_published(event)
        return MoveOutcome(accepted=True, state=self._state, published=True)

    def apply_remote(self, state: CanonicalGameState) -> bool:
        """Adopt a projected state unless it would move the game backwards."""
        if state.game_id != self._game_id:
            return False
        if is_regression(self._state, state):
            _LOGGER.debug(
                "Game %s: ignoring remote state %s (%d plies)",
                self._game_id,
                state.source_event_id,
                state.ply_count,
            )
            return False
        # A newer remote history supersedes any unpublished local snapshot.
        if self._pending is not None and self._pending.id != state.source_event_id:
            _LOGGER.info("Game %s: dropping unpublished snapshot %s", self._game_id, self._pending.id)
        self._pending = None
        _LOGGER.info(
            "Game %s: adopted remote state %s (%d plies)",
            self._game_id,
            state.source_event_id,
            state.ply_count,
        )
        self._set_state(state)
        return True

    # ── Internal helpers ─────────────────────────────────────────────────

    def _actor(self, *, require_turn: bool) -> tuple[CanonicalGameState, ISigner, Color]:
        """State, signer and color for a command by this player.

        Raises:
            RelayChessError: naming the first reason the player cannot act.
        """
        signer = self._signer
        if signer is None:
            raise NotAuthenticated("Sign in to play")
        state = self._state
        if state is None:
            raise NotFound(f"Game {self._game_id} is not loaded")
        color = state.color_of(signer.pubkey)
        if color is None:
            raise NotAuthorized("You are not a player in this game")
        if self._publishing:
            raise SubmissionInFlight("A move is still being published")
        if state.is_game_over:
            raise GameAlreadyOver("Game is already over")
        if require_turn and state.side_to_move != color:
            raise NotYourTurn("It is not your turn")
        return state, signer, color

    def _headers(self, state: CanonicalGameState, created_at: int) -> dict[str, str]:
        return {
            "Event": self._settings.event_name,
            "Site": self._settings.site,
            "Date": time.strftime("%Y.%m.%d", time.gmtime(created_at)),
            "Round": "?",
            "White": state.white,
            "Black": state.black,
            "TimeControl": state.time_control.to_header(),
        }

    def _created_at(self, state: CanonicalGameState, same_history: bool) -> int:
        # Equal-length snapshots only win when strictly later than the adopted one.
        now = int(time.time())
        if same_history:
            return max(now, state.source_timestamp + 1)
        return max(now, state.source_timestamp)

    async def _commit(
        self,
        state: CanonicalGameState,
        signer: ISigner,
        board: chess.Board,
        result: GameResult,
        *,
        termination: str | None = None,
    ) -> MoveOutcome:

        moves = tuple(history_sans(board))
        created_at = self._created_at(state, same_history=len(moves) == state.ply_count)
        headers = self._headers(state, created_at)
        if termination is not None:
            headers["Termination"] = termination
        pgn = encode_game(board, headers, result)
        draft = EventDraft(
            kind=CHESS_GAME_KIND,
            content=pgn,
            tags=freeze_tags(snapshot_tags(state, result)),
            created_at=created_at,
        )

        self._publishing = True
        try:
            try:
                event = await sign_draft(signer, draft)
            except SigningFailed as exc:
                return MoveOutcome.rejected(exc, state)
            new_state = state.advanced(
                pgn=pgn,
                moves=moves,
                result=result,
                source_event_id=event.id,
                source_timestamp=event.created_at,
            )
            self._pending = event
            self._set_state(new_state)
            if self._live is not None:
                self._live.mark_delivered(pgn)
            try:
                await broadcast(self._repository.relay, event, self._settings.broadcast_timeout)
            except BroadcastError as exc:
                self._emit_publish_failed(exc)
                return MoveOutcome(accepted=True, state=new_state, error=exc)
        finally:
            self._publishing = False

        self._on_published(event)
        return MoveOutcome(accepted=True, state=new_state, published=True)

    def _on_published(self, event: SignedEvent) -> None:
        if self._pending is not None and self._pending.id == event.id:
            self._pending = None
        self._repository.ingest(self._game_id, [event])

    def _set_state(self, state: CanonicalGameState) -> None:
        was_over = self._state is not None and self._state.is_game_over
        self._state = state
        self._repository.adopt(state)
        self._sync_clock(state)
        for cb in self.events.on_state_changed:
            cb(state)
        if state.is_game_over and not was_over:
            for cb in self.events.on_game_over:
                cb(state.result)

    def _sync_clock(self, state: CanonicalGameState) -> None:
        if self._clock is None:
            self._clock = Clock(state.time_control, on_timeout=self._on_flag, now=self._now)
        if state.is_game_over:
            self._clock.stop()
        elif self._clock.is_running:
            self._clock.set_turn(state.side_to_move)
        else:
            self._clock.start(state.side_to_move)

    def _on_flag(self, color: Color) -> None:
        _LOGGER.info("Game %s: %s flag fell", self._game_id, color)
        for cb in self.events.on_flag_fallen:
            cb(color)

    def _emit_publish_failed(self, error: BroadcastError) -> None:
        for cb in self.events.on_publish_failed:
            cb(error)


# ── Registry ─────────────────────────────────────────────────────────────────


class SessionRegistry:
    """Open sessions keyed by game identifier."""

    __slots__ = ("_repository", "_signer", "_settings", "_sessions")

    def __init__(
        self,
        repository: GameRepository,
        signer: ISigner | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._repository = repository
        self._signer = signer
        self._settings = settings or get_settings()
        self._sessions: dict[str, GameSession] = {}

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, game_id: str) -> GameSession | None:
        return self._sessions.get(game_id)

    async def get_or_open(self, game_id: str, *, live: bool = True) -> Outcome[GameSession]:
        """Return the open session for *game_id*, opening it if needed."""
        session = self._sessions.get(game_id)
        if session is not None:
            return Outcome.success(session)
        session = GameSession(game_id, self._repository, self._signer, self._settings)
        outcome = await session.open(live=live)
        if not outcome.ok:
            return Outcome.failure(outcome.error)  # type: ignore[arg-type]
        self._sessions[game_id] = session
        return Outcome.success(session)

    async def close(self, game_id: str) -> bool:
        """Close and forget one session; False if none was open."""
        session = self._sessions.pop(game_id, None)
        if session is None:
            return False
        await session.close()
        self._repository.forget(game_id)
        return True

    async def close_all(self) -> None:
        for game_id in list(self._sessions):
            await self.close(game_id)
