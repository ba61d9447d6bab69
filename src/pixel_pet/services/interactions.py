"""Care interactions and minigame rewards."""

from __future__ import annotations

import math
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

from pixel_pet.models.pet import (
    GameRecord,
    GameType,
    InteractionLogEntry,
    InteractionType,
    PetStats,
)

T = TypeVar("T")

FULL_THRESHOLD = 95  # Feeding is refused at or above this fullness


@dataclass(frozen=True)
class InteractionSpec:
    """Stat deltas and cooldown of one interaction type."""

    effects: dict[str, int]
    cooldown_seconds: int


INTERACTIONS: dict[InteractionType, InteractionSpec] = {
    InteractionType.FEED: InteractionSpec(
        effects={"hunger": 25, "happiness": 5, "experience": 2}, cooldown_seconds=30
    ),
    InteractionType.TOUCH: InteractionSpec(
        effects={"happiness": 15, "experience": 1}, cooldown_seconds=10
    ),
    InteractionType.CLEAN: InteractionSpec(
        effects={"cleanliness": 30, "happiness": 8, "health": 5, "experience": 3},
        cooldown_seconds=60,
    ),
    InteractionType.PLAY: InteractionSpec(
        effects={"happiness": 20, "hunger": -10, "experience": 4}, cooldown_seconds=45
    ),
    InteractionType.GIFT: InteractionSpec(
        effects={"happiness": 25, "experience": 10}, cooldown_seconds=120
    ),
    InteractionType.SING: InteractionSpec(
        effects={"happiness": 12, "health": 3, "experience": 2}, cooldown_seconds=20
    ),
}


@dataclass(frozen=True)
class GameRewardSpec:
    """Base reward of a minigame and the score step that scales it."""

    experience: int
    happiness: int
    score_divisor: int


GAME_REWARDS: dict[GameType, GameRewardSpec] = {
    GameType.MEMORY: GameRewardSpec(experience=5, happiness=10, score_divisor=3),
    GameType.REACTION: GameRewardSpec(experience=3, happiness=8, score_divisor=2000),
    GameType.PUZZLE: GameRewardSpec(experience=8, happiness=15, score_divisor=5000),
}


def push_bounded(history: Sequence[T], entry: T, limit: int) -> list[T]:
    """Prepend an entry, keeping only the newest ``limit`` items."""
    return [entry, *history][:limit]


def cooldown_remaining(
    history: Sequence[InteractionLogEntry], interaction_type: InteractionType, now: int
) -> int:
    """Seconds left before ``interaction_type`` can be used again."""
    cooldown_ms = INTERACTIONS[interaction_type].cooldown_seconds * 1000
    last = next((entry for entry in history if entry.type == interaction_type), None)
    if last is None:
        return 0
    remaining_ms = cooldown_ms - (now - last.timestamp)
    return max(0, math.ceil(remaining_ms / 1000))


def is_full(stats: PetStats) -> bool:
    return stats.hunger >= FULL_THRESHOLD


def apply_interaction(
    stats: PetStats, interaction_type: InteractionType, now: int
) -> tuple[PetStats, InteractionLogEntry]:
    """Apply an interaction's effects and build its log entry."""
    effects = dict(INTERACTIONS[interaction_type].effects)
    entry = InteractionLogEntry(
        id=uuid.uuid4().hex,
        pet_id=stats.pet_id,
        type=interaction_type,
        timestamp=now,
        effect=effects,
    )
    return stats.apply(effects), entry


def calculate_game_reward(game_type: GameType, score: int) -> dict[str, int]:
    """Scale a game's base reward by how well it was played."""
    spec = GAME_REWARDS[game_type]
    multiplier = max(1.0, score / spec.score_divisor)
    return {
        "experience": math.floor(spec.experience * multiplier),
        "happiness": math.floor(spec.happiness * multiplier),
    }


def record_game(
    stats: PetStats, game_type: GameType, score: int, now: int
) -> tuple[PetStats, GameRecord]:
    """Apply a finished game's reward and build its record."""
    reward = calculate_game_reward(game_type, score)
    record = GameRecord(
        id=uuid.uuid4().hex,
        pet_id=stats.pet_id,
        game_type=game_type,
        score=score,
        reward=reward,
        timestamp=now,
    )
    return stats.apply(reward), record
