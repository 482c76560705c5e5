"""Game layer: challenges, projection, sessions, live updates, clock.

Quick start::

    from relaychess.game import GameRepository, GameSession
    from relaychess.relay import MemoryRelay

    relay = MemoryRelay()
    session = GameSession(game_id, GameRepository(relay), signer)
    await session.open(live=True)
    outcome = await session.submit_move("e2", "e4")
"""

from relaychess.game.challenge import (
    Challenge,
    ChallengeMachine,
    acceptance_draft,
    challenge_draft,
    decline_draft,
    parse_challenge,
    state_from_acceptance,
)
from relaychess.game.challenges import ChallengeService, OutgoingChallenges
from relaychess.game.clock import Clock, ClockSnapshot
from relaychess.game.interfaces import (
    DEFAULT_TIME_CONTROL,
    TIME_CONTROL_PRESETS,
    IClock,
    TimeControl,
)
from relaychess.game.live import (
    IProducer,
    LiveUpdateChannel,
    PollProducer,
    PushProducer,
    UpdateMerger,
)
from relaychess.game.projector import GameProjector, check_successor, is_regression
from relaychess.game.repository import GameRepository
from relaychess.game.session import GameEvents, GameSession, MoveOutcome, SessionRegistry
from relaychess.game.state import CanonicalGameState

__all__ = [
    # Interfaces
    "IClock",
    "IProducer",
    "TimeControl",
    "DEFAULT_TIME_CONTROL",
    "TIME_CONTROL_PRESETS",
    # Challenges
    "Challenge",
    "ChallengeMachine",
    "ChallengeService",
    "OutgoingChallenges",
    "acceptance_draft",
    "challenge_draft",
    "decline_draft",
    "parse_challenge",
    "state_from_acceptance",
    # State / projection
    "CanonicalGameState",
    "GameProjector",
    "GameRepository",
    "check_successor",
    "is_regression",
    # Sessions
    "GameEvents",
    "GameSession",
    "MoveOutcome",
    "SessionRegistry",
    # Live updates
    "LiveUpdateChannel",
    "PollProducer",
    "PushProducer",
    "UpdateMerger",
    # Clock
    "Clock",
    "ClockSnapshot",
]
