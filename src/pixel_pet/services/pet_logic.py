"""Stat decay, growth and animation logic."""

from __future__ import annotations

import math
from dataclasses import dataclass

from pixel_pet.core.clock import MS_PER_HOUR
from pixel_pet.models.pet import AnimationState, HealthState, LifeStage, PetRecord, PetStats

# Decay per effective hour. Hunger is satiety, so it falls as the pet gets hungrier.
DECAY_RATES_PER_HOUR = {
    "health": 2,
    "happiness": 3,
    "hunger": 5,
    "cleanliness": 4,
}

EXPERIENCE_PER_HOUR = 1

# Game-internal age (days) needed to leave each stage
STAGE_AGE_THRESHOLDS = {
    LifeStage.BABY: 30,
    LifeStage.ADULT: 90,
}

# Thresholds for derived animations
LOW_HUNGER_THRESHOLD = 30
LOW_CLEANLINESS_THRESHOLD = 30
HIGH_HAPPINESS_THRESHOLD = 80
LOW_ENERGY_THRESHOLD = 30
PLAYFUL_THRESHOLD = 60


@dataclass
class GrowthResult:
    """Experience and stage change produced by elapsed time."""

    experience_gain: int
    new_stage: LifeStage | None = None


def effective_hours(offline_minutes: int, time_speed: float) -> float:
    """Convert offline minutes into hours of simulated time."""
    return offline_minutes * time_speed / 60


def calculate_status_decay(
    stats: PetStats, offline_minutes: int, time_speed: float
) -> dict[str, int]:
    """Calculate decayed values for the stats that wear down over time.

    Returns the new absolute values, floored at zero. Returns an empty dict
    when no time has passed.
    """
    if offline_minutes <= 0:
        return {}

    hours = effective_hours(offline_minutes, time_speed)
    current = stats.model_dump()
    return {
        stat: max(0, current[stat] - math.floor(rate * hours))
        for stat, rate in DECAY_RATES_PER_HOUR.items()
    }


def game_age_in_days(pet: PetRecord, now: int, time_speed: float) -> int:
    """Age in simulated days. One real hour since birth is one day."""
    real_hours_alive = (now - pet.birth_time) / MS_PER_HOUR
    return max(0, math.floor(real_hours_alive * time_speed))


def get_next_stage(current_stage: LifeStage, age_days: int) -> LifeStage:
    """Determine if the pet should grow out of its current stage."""
    stages = list(LifeStage)
    current_idx = stages.index(current_stage)

    if current_idx >= len(stages) - 1:
        return current_stage  # Already at max stage

    if age_days >= STAGE_AGE_THRESHOLDS[current_stage]:
        return stages[current_idx + 1]

    return current_stage


def calculate_growth(
    pet: PetRecord, offline_minutes: int, time_speed: float, now: int
) -> GrowthResult:
    """Calculate experience gained and any stage change from elapsed time."""
    if offline_minutes <= 0:
        return GrowthResult(experience_gain=0)

    hours = effective_hours(offline_minutes, time_speed)
    experience_gain = math.floor(hours * EXPERIENCE_PER_HOUR)

    next_stage = get_next_stage(pet.stage, game_age_in_days(pet, now, time_speed))

    return GrowthResult(
        experience_gain=experience_gain,
        new_stage=next_stage if next_stage != pet.stage else None,
    )


def derive_animation(stats: PetStats, health: HealthState) -> AnimationState:
    """Pick the idle animation that reflects the pet's current state."""
    # Dead pets are shown asleep
    if health.is_dead:
        return AnimationState.SLEEPING
    if health.is_sick:
        return AnimationState.SICK

    if stats.hunger < LOW_HUNGER_THRESHOLD:
        return AnimationState.EATING
    if stats.cleanliness < LOW_CLEANLINESS_THRESHOLD:
        return AnimationState.CLEANING
    if stats.happiness > HIGH_HAPPINESS_THRESHOLD:
        return AnimationState.HAPPY
    if stats.energy < LOW_ENERGY_THRESHOLD:
        return AnimationState.SLEEPING
    if stats.happiness > PLAYFUL_THRESHOLD and stats.health > PLAYFUL_THRESHOLD:
        return AnimationState.PLAYING

    return AnimationState.IDLE
