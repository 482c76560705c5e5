"""ChallengeService: create, answer and list challenges over a relay."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from relaychess.config import Settings, get_settings
from relaychess.core.enums import ChallengeStatus, ColorPreference
from relaychess.core.errors import (
    BroadcastError,
    DecodeFailure,
    NotAuthenticated,
    NotAuthorized,
    Outcome,
    QueryFailed,
    RelayChessError,
    SigningFailed,
)
from relaychess.core.ids import declined_id, generate_game_id
from relaychess.game.challenge import (
    Challenge,
    ChallengeMachine,
    acceptance_draft,
    challenge_draft,
    decline_draft,
    parse_challenge,
    state_from_acceptance,
)
from relaychess.game.interfaces import DEFAULT_TIME_CONTROL, TimeControl
from relaychess.game.state import CanonicalGameState
from relaychess.relay.base import IRelay, ISigner, sign_and_broadcast
from relaychess.relay.events import CHESS_CHALLENGE_KIND, SignedEvent
from relaychess.relay.filters import Filter

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OutgoingChallenges:
    """The user's open challenges and the games others accepted from them."""

    pending: list[Challenge] = field(default_factory=list)
    accepted_game_ids: list[str] = field(default_factory=list)


class ChallengeService:
    """Challenge operations for one identity.

    Every method returns an :class:`Outcome`; nothing raises for relay or
    authorization problems.
    """

    __slots__ = ("_relay", "_signer", "_settings")

    def __init__(
        self,
        relay: IRelay,
        signer: ISigner | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._relay = relay
        self._signer = signer
        self._settings = settings or get_settings()

    @property
    def pubkey(self) -> str | None:
        return self._signer.pubkey if self._signer is not None else None

    # ── Commands ─────────────────────────────────────────────────────────

    async def create(
        self,
        challenged: str,
        time_control: TimeControl = DEFAULT_TIME_CONTROL,
        challenger_color: ColorPreference = ColorPreference.RANDOM,
    ) -> Outcome[Challenge]:
        """Publish a new pending challenge addressed to *challenged*."""
        if self._signer is None:
            return Outcome.failure(NotAuthenticated("Sign in to send a challenge"))
        if challenged == self._signer.pubkey:
            return Outcome.failure(NotAuthorized("Cannot challenge yourself"))

        draft = challenge_draft(generate_game_id(), challenged, time_control, challenger_color)
        try:
            event = await sign_and_broadcast(
                self._signer, self._relay, draft, self._settings.broadcast_timeout
            )
        except (SigningFailed, BroadcastError) as exc:
            return Outcome.failure(exc)
        _LOGGER.info("Challenge %s sent to %s", draft.tag_value("d"), challenged)
        return Outcome.success(parse_challenge(event))

    async def accept(self, challenge: Challenge) -> Outcome[CanonicalGameState]:
        """Publish the acceptance; returns the game's empty-history state."""
        try:
            signer = await self._answering_signer(challenge)
            event = await sign_and_broadcast(
                signer,
                self._relay,
                acceptance_draft(challenge),
                self._settings.broadcast_timeout,
            )
        except RelayChessError as exc:
            return Outcome.failure(exc)
        _LOGGER.info("Accepted challenge %s", challenge.id)
        return Outcome.success(state_from_acceptance(event, self._settings.color_scheme))

    async def decline(self, challenge: Challenge) -> Outcome[Challenge]:
        """Publish the decline under ``<id>-declined``."""
        try:
            signer = await self._answering_signer(challenge)
            await sign_and_broadcast(
                signer,
                self._relay,
                decline_draft(challenge),
                self._settings.broadcast_timeout,
            )
        except RelayChessError as exc:
            return Outcome.failure(exc)
        _LOGGER.info("Declined challenge %s", challenge.id)
        return Outcome.success(replace(challenge, status=ChallengeStatus.DECLINED))

    # ── Queries ──────────────────────────────────────────────────────────

    async def status(self, challenge: Challenge) -> Outcome[ChallengeStatus]:
        """Status of *challenge* as the relay's events currently show it."""
        flt = Filter.build(
            kinds=[CHESS_CHALLENGE_KIND],
            tags={"d": [challenge.id, declined_id(challenge.id)]},
            limit=self._settings.challenge_query_limit,
        )
        result = await self._query([flt])
        if not result.ok:
            return Outcome.failure(result.error)  # type: ignore[arg-type]
        machine = ChallengeMachine(challenge)
        return Outcome.success(machine.observe_all(result.unwrap()))

    async def incoming(self) -> Outcome[list[Challenge]]:
        """Pending challenges addressed to the user that are still unanswered."""
        if self._signer is None:
            return Outcome.failure(NotAuthenticated("Sign in to see challenges"))
        me = self._signer.pubkey
        limit = self._settings.listing_limit

        result = await self._query(
            [
                Filter.build(kinds=[CHESS_CHALLENGE_KIND], tags={"p": [me]}, limit=limit),
                Filter.build(kinds=[CHESS_CHALLENGE_KIND], authors=[me], limit=limit),
            ]
        )
        if not result.ok:
            return Outcome.failure(result.error)  # type: ignore[arg-type]
        events = result.unwrap()

        answered = {
            origin
            for event in events
            if event.pubkey == me and _status_of(event) != ChallengeStatus.PENDING.value
            for origin in event.tag_values("e")
        }
        latest: dict[str, Challenge] = {}
        for challenge in _parse_all(events):
            if challenge.status != ChallengeStatus.PENDING:
                continue
            if challenge.challenged != me or challenge.challenger == me:
                continue
            if challenge.origin_event_id in answered:
                continue
            known = latest.get(challenge.id)
            if known is None or challenge.created_at > known.created_at:
                latest[challenge.id] = challenge
        return Outcome.success(_newest_first(latest.values()))

    async def outgoing(self) -> Outcome[OutgoingChallenges]:
        """The user's open challenges, plus games where the opponent accepted."""
        if self._signer is None:
            return Outcome.failure(NotAuthenticated("Sign in to see challenges"))
        me = self._signer.pubkey
        limit = self._settings.listing_limit

        result = await self._query(
            [
                Filter.build(kinds=[CHESS_CHALLENGE_KIND], authors=[me], limit=limit),
                Filter.build(kinds=[CHESS_CHALLENGE_KIND], tags={"p": [me]}, limit=limit),
            ]
        )
        if not result.ok:
            return Outcome.failure(result.error)  # type: ignore[arg-type]

        pending: dict[str, Challenge] = {}
        answers: list[Challenge] = []
        for challenge in _parse_all(result.unwrap()):
            if challenge.status == ChallengeStatus.PENDING:
                if challenge.challenger == me:
                    pending[challenge.id] = challenge
            elif challenge.challenger == me:
                answers.append(challenge)

        # Only the challenged party of one of my own challenges can answer it.
        origins = dict(pending)
        accepted: list[str] = []
        for answer in sorted(answers, key=lambda c: c.created_at, reverse=True):
            origin = origins.get(answer.id)
            if (
                origin is None
                or origin.origin_event_id != answer.origin_event_id
                or origin.challenged != answer.challenged
            ):
                _LOGGER.debug("Ignoring unmatched answer %s from %s", answer.id, answer.challenged)
                continue
            pending.pop(answer.id, None)
            if answer.status == ChallengeStatus.ACCEPTED and answer.id not in accepted:
                accepted.append(answer.id)

        return Outcome.success(
            OutgoingChallenges(pending=_newest_first(pending.values()), accepted_game_ids=accepted)
        )

    # ── Internal ─────────────────────────────────────────────────────────

    async def _answering_signer(self, challenge: Challenge) -> ISigner:
        """The signer allowed to answer *challenge*.

        Raises:
            NotAuthenticated: no signer.
            NotAuthorized: not the challenged party, or already answered.
        """
        signer = self._signer
        if signer is None:
            raise NotAuthenticated("Sign in to answer a challenge")
        if signer.pubkey != challenge.challenged:
            raise NotAuthorized("This challenge is not addressed to you")
        if challenge.status.is_terminal:
            raise NotAuthorized(f"Challenge already {challenge.status.value}")
        status = await self.status(challenge)
        if status.ok and status.unwrap().is_terminal:
            raise NotAuthorized(f"Challenge already {status.unwrap().value}")
        return signer

    async def _query(self, filters: list[Filter]) -> Outcome[list[SignedEvent]]:
        try:
            return Outcome.success(await self._relay.query(filters))
        except (OSError, RuntimeError) as exc:
            _LOGGER.warning("Challenge query failed: %s", exc)
            return Outcome.failure(QueryFailed(f"Relay query failed: {exc}"))


def _status_of(event: SignedEvent) -> str:
    return event.tag_value("status") or ChallengeStatus.PENDING.value


def _parse_all(events: list[SignedEvent]) -> list[Challenge]:
    parsed: list[Challenge] = []
    for event in events:
        try:
            parsed.append(parse_challenge(event))
        except DecodeFailure as exc:
            _LOGGER.debug("Skipping malformed challenge %s: %s", event.id, exc)
    return parsed


def _newest_first(challenges: Iterable[Challenge]) -> list[Challenge]:
    return sorted(challenges, key=lambda c: (c.created_at, c.origin_event_id), reverse=True)
