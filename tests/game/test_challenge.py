"""Tests for challenge payloads and the challenge state machine."""

import json

import pytest

from relaychess.core.colors import ColorScheme, resolve_colors
from relaychess.core.enums import ChallengeStatus, ColorPreference, GameResult
from relaychess.core.errors import DecodeFailure
from relaychess.game.challenge import (
    ChallengeMachine,
    acceptance_draft,
    challenge_draft,
    decline_draft,
    parse_challenge,
    state_from_acceptance,
)
from relaychess.game.interfaces import DEFAULT_TIME_CONTROL, TimeControl
from relaychess.relay.events import CHESS_CHALLENGE_KIND, EventDraft, freeze_tags

GAME_ID = "k3x9q2m7w1z8p4t6r0y5v2b8n1"


@pytest.fixture
def origin(alice, bob):
    draft = challenge_draft(
        GAME_ID, bob.pubkey, TimeControl(300, 3), ColorPreference.RANDOM, created_at=1000
    )
    return alice.sign_now(draft)


@pytest.fixture
def challenge(origin):
    return parse_challenge(origin)


class TestParseChallenge:
    def test_origin_fields(self, origin, alice, bob) -> None:
        challenge = parse_challenge(origin)
        assert challenge.id == GAME_ID
        assert challenge.origin_event_id == origin.id
        assert challenge.challenger == alice.pubkey
        assert challenge.challenged == bob.pubkey
        assert challenge.time_control == TimeControl(300, 3)
        assert challenge.challenger_color == ColorPreference.RANDOM
        assert challenge.status == ChallengeStatus.PENDING

    def test_wire_format(self, origin, bob) -> None:
        assert origin.kind == CHESS_CHALLENGE_KIND
        assert origin.tag_value("d") == GAME_ID
        assert origin.tag_value("p") == bob.pubkey
        assert origin.tag_value("status") == "pending"
        assert json.loads(origin.content) == {
            "timeControl": {"initial": 300, "increment": 3},
            "challengerColor": "random",
        }

    def test_acceptance_reads_roles_back(self, challenge, alice, bob) -> None:
        event = bob.sign_now(acceptance_draft(challenge, created_at=1001))
        parsed = parse_challenge(event)
        assert parsed.status == ChallengeStatus.ACCEPTED
        assert parsed.challenger == alice.pubkey
        assert parsed.challenged == bob.pubkey
        assert parsed.origin_event_id == challenge.origin_event_id
        assert json.loads(event.content)["originalChallenger"] == alice.pubkey

    def test_decline_strips_suffix(self, challenge, bob) -> None:
        event = bob.sign_now(decline_draft(challenge, created_at=1001))
        assert event.tag_value("d") == f"{GAME_ID}-declined"
        parsed = parse_challenge(event)
        assert parsed.id == GAME_ID
        assert parsed.status == ChallengeStatus.DECLINED

    def test_missing_time_control_uses_default(self, alice, bob) -> None:
        draft = EventDraft(
            kind=CHESS_CHALLENGE_KIND,
            content="{}",
            tags=freeze_tags([["d", GAME_ID], ["p", bob.pubkey]]),
            created_at=1,
        )
        parsed = parse_challenge(alice.sign_now(draft))
        assert parsed.time_control == DEFAULT_TIME_CONTROL
        assert parsed.challenger_color == ColorPreference.RANDOM

    @pytest.mark.parametrize(
        ("content", "tags"),
        [
            ("not json", [["d", GAME_ID], ["p", "x"]]),
            ("[1, 2]", [["d", GAME_ID], ["p", "x"]]),
            ('{"timeControl": "fast"}', [["d", GAME_ID], ["p", "x"]]),
            ('{"challengerColor": "purple"}', [["d", GAME_ID], ["p", "x"]]),
            ("{}", [["p", "x"]]),
            ("{}", [["d", GAME_ID]]),
            ("{}", [["d", GAME_ID], ["p", "x"], ["status", "maybe"]]),
        ],
    )
    def test_malformed(self, alice, content, tags) -> None:
        draft = EventDraft(
            kind=CHESS_CHALLENGE_KIND, content=content, tags=freeze_tags(tags), created_at=1
        )
        with pytest.raises(DecodeFailure):
            parse_challenge(alice.sign_now(draft))

    def test_wrong_kind(self, alice) -> None:
        draft = EventDraft(kind=64, content="{}", tags=freeze_tags([["d", "x"], ["p", "y"]]))
        with pytest.raises(DecodeFailure, match="kind"):
            parse_challenge(alice.sign_now(draft))


class TestChallengeMachine:
    def test_fresh_challenge_is_pending(self, challenge) -> None:
        machine = ChallengeMachine(challenge)
        assert machine.status == ChallengeStatus.PENDING
        assert not machine.is_terminal
        assert machine.initial_state() is None

    def test_accept_by_challenged(self, challenge, bob) -> None:
        machine = ChallengeMachine(challenge)
        answer = bob.sign_now(acceptance_draft(challenge, created_at=1001))
        assert machine.observe(answer)
        assert machine.status == ChallengeStatus.ACCEPTED
        assert machine.answer == answer

    def test_decline_by_challenged(self, challenge, bob) -> None:
        machine = ChallengeMachine(challenge)
        assert machine.observe(bob.sign_now(decline_draft(challenge, created_at=1001)))
        assert machine.status == ChallengeStatus.DECLINED
        assert machine.initial_state() is None

    def test_other_author_ignored(self, challenge, carol) -> None:
        machine = ChallengeMachine(challenge)
        assert not machine.observe(carol.sign_now(acceptance_draft(challenge, created_at=1001)))
        assert machine.status == ChallengeStatus.PENDING

    def test_challenger_cannot_accept_own_challenge(self, challenge, alice) -> None:
        machine = ChallengeMachine(challenge)
        assert not machine.observe(alice.sign_now(acceptance_draft(challenge, created_at=1001)))

    def test_answer_must_reference_origin(self, challenge, bob) -> None:
        machine = ChallengeMachine(challenge)
        draft = acceptance_draft(challenge, created_at=1001)
        tags = tuple(tag for tag in draft.tags if tag[0] != "e")
        unreferenced = EventDraft(
            kind=draft.kind, content=draft.content, tags=tags, created_at=draft.created_at
        )
        assert not machine.observe(bob.sign_now(unreferenced))

    def test_decline_must_use_declined_id(self, challenge, bob) -> None:
        machine = ChallengeMachine(challenge)
        draft = decline_draft(challenge, created_at=1001)
        tags = tuple(("d", GAME_ID) if tag[0] == "d" else tag for tag in draft.tags)
        wrong = EventDraft(kind=draft.kind, content=draft.content, tags=tags, created_at=1001)
        assert not machine.observe(bob.sign_now(wrong))

    def test_terminal_is_final(self, challenge, bob) -> None:
        machine = ChallengeMachine(challenge)
        machine.observe(bob.sign_now(decline_draft(challenge, created_at=1001)))
        assert not machine.observe(bob.sign_now(acceptance_draft(challenge, created_at=1002)))
        assert machine.status == ChallengeStatus.DECLINED

    def test_batch_ordered_by_timestamp(self, challenge, bob) -> None:
        late_accept = bob.sign_now(acceptance_draft(challenge, created_at=1005))
        early_decline = bob.sign_now(decline_draft(challenge, created_at=1002))
        machine = ChallengeMachine(challenge)
        assert machine.observe_all([late_accept, early_decline]) == ChallengeStatus.DECLINED

    def test_from_events_finds_origin(self, origin, challenge, bob) -> None:
        answer = bob.sign_now(acceptance_draft(challenge, created_at=1001))
        machine = ChallengeMachine.from_events(GAME_ID, [answer, origin])
        assert machine is not None
        assert machine.challenge.origin_event_id == origin.id
        assert machine.status == ChallengeStatus.ACCEPTED

    def test_from_events_without_origin(self, challenge, bob) -> None:
        answer = bob.sign_now(acceptance_draft(challenge, created_at=1001))
        assert ChallengeMachine.from_events(GAME_ID, [answer]) is None


class TestInitialState:
    def test_state_from_acceptance(self, challenge, alice, bob) -> None:
        answer = bob.sign_now(acceptance_draft(challenge, created_at=1001))
        state = state_from_acceptance(answer)
        expected = resolve_colors(
            alice.pubkey, bob.pubkey, ColorPreference.RANDOM, game_id=GAME_ID
        )
        assert (state.white, state.black) == (expected.white, expected.black)
        assert state.game_id == GAME_ID
        assert state.pgn == "*"
        assert state.moves == ()
        assert state.result == GameResult.IN_PROGRESS
        assert state.time_control == TimeControl(300, 3)
        assert state.source_event_id == answer.id

    def test_both_sides_compute_same_colors(self, challenge, bob) -> None:
        answer = bob.sign_now(acceptance_draft(challenge, created_at=1001))
        machine = ChallengeMachine(challenge)
        machine.observe(answer)
        from_machine = machine.initial_state()
        from_answer = state_from_acceptance(answer)
        assert from_machine == from_answer
        assert machine.assignment() == challenge.assignment()

    def test_explicit_color_respected(self, alice, bob) -> None:
        draft = challenge_draft(GAME_ID, bob.pubkey, TimeControl(60, 0), ColorPreference.BLACK)
        challenge = parse_challenge(alice.sign_now(draft))
        answer = bob.sign_now(acceptance_draft(challenge))
        state = state_from_acceptance(answer, ColorScheme.LEGACY)
        assert state.white == bob.pubkey
        assert state.black == alice.pubkey

    def test_pending_event_is_not_acceptance(self, origin) -> None:
        with pytest.raises(DecodeFailure):
            state_from_acceptance(origin)
