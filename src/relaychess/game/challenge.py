"""Challenge handshake: wire payloads and the per-challenge state machine.

A challenge exists only as signed events sharing a game identifier.  The
challenger publishes a ``pending`` event; the challenged party answers with
exactly one ``accepted`` or ``declined`` event that references the origin.
Acceptance repeats the challenge parameters and the original challenger,
so either side can recompute the color assignment from that event alone.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from relaychess.core.colors import ColorAssignment, ColorScheme, resolve_colors
from relaychess.core.enums import ChallengeStatus, ColorPreference, GameResult
from relaychess.core.errors import DecodeFailure
from relaychess.core.ids import declined_id
from relaychess.game.interfaces import DEFAULT_TIME_CONTROL, TimeControl
from relaychess.game.state import CanonicalGameState
from relaychess.relay.events import (
    CHESS_CHALLENGE_KIND,
    EventDraft,
    SignedEvent,
    Tags,
    freeze_tags,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Challenge:
    """One challenge as read from its origin event."""

    id: str
    origin_event_id: str
    challenger: str
    challenged: str
    time_control: TimeControl
    challenger_color: ColorPreference
    created_at: int
    status: ChallengeStatus = ChallengeStatus.PENDING

    def assignment(self, scheme: ColorScheme = ColorScheme.DIGEST) -> ColorAssignment:
        return resolve_colors(
            self.challenger,
            self.challenged,
            self.challenger_color,
            scheme=scheme,
            game_id=self.id,
        )


# ── Payload parsing ──────────────────────────────────────────────────────────


def _load_content(event: SignedEvent) -> dict[str, object]:
    try:
        content = json.loads(event.content)
    except (TypeError, ValueError) as exc:
        raise DecodeFailure(f"Challenge content is not JSON: {event.id}") from exc
    if not isinstance(content, dict):
        raise DecodeFailure(f"Challenge content is not an object: {event.id}")
    return content


def _preference(raw: object) -> ColorPreference:
    try:
        return ColorPreference(raw or ColorPreference.RANDOM.value)
    except ValueError:
        raise DecodeFailure(f"Unknown challenger color: {raw!r}") from None


def _time_control(raw: object) -> TimeControl:
    if raw is None:
        return DEFAULT_TIME_CONTROL
    try:
        return TimeControl.from_payload(raw)
    except ValueError as exc:
        raise DecodeFailure(str(exc)) from exc


def _status(event: SignedEvent) -> ChallengeStatus:
    raw = event.tag_value("status") or ChallengeStatus.PENDING.value
    try:
        return ChallengeStatus(raw)
    except ValueError:
        raise DecodeFailure(f"Unknown challenge status: {raw!r}") from None


def parse_challenge(event: SignedEvent) -> Challenge:
    """Read a challenge-kind event as a :class:`Challenge`.

    For an answer event the roles are read back from its payload: the author
    is the challenged party and ``originalChallenger`` (or the ``p`` tag)
    the challenger.

    Raises:
        DecodeFailure: wrong kind, missing ``d``/``p`` tags, bad content.
    """
    if event.kind != CHESS_CHALLENGE_KIND:
        raise DecodeFailure(f"Not a challenge event: kind {event.kind}")
    game_id = event.tag_value("d")
    recipient = event.tag_value("p")
    if not game_id or not recipient:
        raise DecodeFailure(f"Challenge event {event.id} lacks d/p tags")

    content = _load_content(event)
    status = _status(event)
    if status == ChallengeStatus.PENDING:
        challenger, challenged, origin = event.pubkey, recipient, event.id
    else:
        original = content.get("originalChallenger")
        challenger = original if isinstance(original, str) and original else recipient
        challenged = event.pubkey
        origin = event.tag_value("e") or event.id
        if status == ChallengeStatus.DECLINED and game_id.endswith("-declined"):
            game_id = game_id[: -len("-declined")]

    return Challenge(
        id=game_id,
        origin_event_id=origin,
        challenger=challenger,
        challenged=challenged,
        time_control=_time_control(content.get("timeControl")),
        challenger_color=_preference(content.get("challengerColor")),
        created_at=event.created_at,
        status=status,
    )


# ── Drafts ───────────────────────────────────────────────────────────────────


def _draft(content: str, tags: Tags, created_at: int | None) -> EventDraft:
    if created_at is None:
        return EventDraft(kind=CHESS_CHALLENGE_KIND, content=content, tags=tags)
    return EventDraft(
        kind=CHESS_CHALLENGE_KIND, content=content, tags=tags, created_at=created_at
    )


def challenge_draft(
    game_id: str,
    challenged: str,
    time_control: TimeControl,
    challenger_color: ColorPreference = ColorPreference.RANDOM,
    *,
    created_at: int | None = None,
) -> EventDraft:
    content = json.dumps(
        {"timeControl": time_control.to_payload(), "challengerColor": challenger_color.value}
    )
    tags = freeze_tags(
        [
            ["d", game_id],
            ["p", challenged],
            ["status", ChallengeStatus.PENDING.value],
            ["alt", f"Chess challenge: {time_control.describe()}"],
        ]
    )
    return _draft(content, tags, created_at)


def acceptance_draft(challenge: Challenge, *, created_at: int | None = None) -> EventDraft:
    content = json.dumps(
        {
            "timeControl": challenge.time_control.to_payload(),
            "challengerColor": challenge.challenger_color.value,
            "originalChallenger": challenge.challenger,
        }
    )
    tags = freeze_tags(
        [
            ["d", challenge.id],
            ["p", challenge.challenger],
            ["e", challenge.origin_event_id, "", "reply"],
            ["status", ChallengeStatus.ACCEPTED.value],
            ["alt", f"Chess challenge accepted: {challenge.time_control.describe()}"],
        ]
    )
    return _draft(content, tags, created_at)


def decline_draft(challenge: Challenge, *, created_at: int | None = None) -> EventDraft:
    content = json.dumps(
        {
            "timeControl": challenge.time_control.to_payload(),
            "challengerColor": challenge.challenger_color.value,
        }
    )
    tags = freeze_tags(
        [
            ["d", declined_id(challenge.id)],
            ["p", challenge.challenger],
            ["e", challenge.origin_event_id, "", "reply"],
            ["status", ChallengeStatus.DECLINED.value],
            ["alt", "Chess challenge declined"],
        ]
    )
    return _draft(content, tags, created_at)


# ── State machine ────────────────────────────────────────────────────────────


class ChallengeMachine:
    """Lifecycle of one challenge: ``PENDING -> ACCEPTED | DECLINED``.

    Only an answer authored by the challenged party, carrying a terminal
    status, referencing the origin event and addressed with the matching
    identifier transitions the machine.  The first terminal answer observed
    wins; everything after it is ignored.
    """

    __slots__ = ("_challenge", "_answer")

    def __init__(self, challenge: Challenge) -> None:
        self._challenge = replace(challenge, status=ChallengeStatus.PENDING)
        self._answer: SignedEvent | None = None

    @classmethod
    def from_events(cls, game_id: str, events: Iterable[SignedEvent]) -> ChallengeMachine | None:
        """Find the earliest pending origin for *game_id* and fold the rest."""
        pending: Challenge | None = None
        candidates = sorted(events, key=lambda e: e.sort_key)
        for event in candidates:
            if event.kind != CHESS_CHALLENGE_KIND or event.tag_value("d") != game_id:
                continue
            if event.tag_value("status") not in (None, ChallengeStatus.PENDING.value):
                continue
            try:
                pending = parse_challenge(event)
            except DecodeFailure as exc:
                _LOGGER.debug("Skipping malformed challenge %s: %s", event.id, exc)
                continue
            break
        if pending is None:
            return None
        machine = cls(pending)
        machine.observe_all(candidates)
        return machine

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def challenge(self) -> Challenge:
        return self._challenge

    @property
    def status(self) -> ChallengeStatus:
        return self._challenge.status

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def answer(self) -> SignedEvent | None:
        """The event that moved the machine to its terminal status."""
        return self._answer

    # ── Transitions ──────────────────────────────────────────────────────

    def observe(self, event: SignedEvent) -> bool:
        """Apply *event*; returns True if it changed the status."""
        if self.is_terminal:
            return False
        status = self._transition_for(event)
        if status is None:
            return False
        self._challenge = replace(self._challenge, status=status)
        self._answer = event
        _LOGGER.debug("Challenge %s -> %s via %s", self._challenge.id, status.value, event.id)
        return True

    def observe_all(self, events: Iterable[SignedEvent]) -> ChallengeStatus:
        """Observe a batch in ``(created_at, id)`` order."""
        for event in sorted(events, key=lambda e: e.sort_key):
            self.observe(event)
        return self.status

    def assignment(self, scheme: ColorScheme = ColorScheme.DIGEST) -> ColorAssignment:
        return self._challenge.assignment(scheme)

    def initial_state(self, scheme: ColorScheme = ColorScheme.DIGEST) -> CanonicalGameState | None:
        """Empty-history state for an accepted challenge, else ``None``."""
        if self.status != ChallengeStatus.ACCEPTED or self._answer is None:
            return None
        return state_from_acceptance(self._answer, scheme)

    def _transition_for(self, event: SignedEvent) -> ChallengeStatus | None:
        challenge = self._challenge
        if event.kind != CHESS_CHALLENGE_KIND or event.pubkey != challenge.challenged:
            return None
        if challenge.origin_event_id not in event.tag_values("e"):
            return None
        raw_status = event.tag_value("status")
        d_tag = event.tag_value("d")
        if raw_status == ChallengeStatus.ACCEPTED.value and d_tag == challenge.id:
            return ChallengeStatus.ACCEPTED
        if raw_status == ChallengeStatus.DECLINED.value and d_tag == declined_id(challenge.id):
            return ChallengeStatus.DECLINED
        return None


def state_from_acceptance(
    event: SignedEvent,
    scheme: ColorScheme = ColorScheme.DIGEST,
) -> CanonicalGameState:
    """Initial canonical state recomputed from an acceptance event alone.

    Raises:
        DecodeFailure: if *event* is not a well-formed acceptance.
    """
    challenge = parse_challenge(event)
    if challenge.status != ChallengeStatus.ACCEPTED:
        raise DecodeFailure(f"Event {event.id} is not an acceptance")
    colors = challenge.assignment(scheme)
    return CanonicalGameState(
        game_id=challenge.id,
        white=colors.white,
        black=colors.black,
        pgn="*",
        moves=(),
        time_control=challenge.time_control,
        result=GameResult.IN_PROGRESS,
        source_event_id=event.id,
        source_timestamp=event.created_at,
    )
