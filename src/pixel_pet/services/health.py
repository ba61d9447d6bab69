"""Sickness, death and revival of a pet.

The state machine consumes stats and produces a new ``HealthState``; it
never changes stats itself, except for ``revive`` which resets them to the
recovery floors.

Death is timed from sickness onset, not from the moment health reached 0:
a pet that fell sick at health 19 and sits at 0 when the 24 hours are up
dies at that check, even if it only reached 0 a minute earlier.
"""

from __future__ import annotations

import structlog

from pixel_pet.core.clock import MS_PER_HOUR
from pixel_pet.models.pet import HealthState, PetStats

logger = structlog.get_logger()

SICK_THRESHOLD = 20  # health below this = sick
RECOVERY_THRESHOLD = 50  # health at or above this = recovered
CRITICAL_HEALTH = 0
DEATH_AFTER_MS = 24 * MS_PER_HOUR

# Stat values restored on revival
REVIVAL_FLOORS = {
    "health": 50,
    "happiness": 30,
    "hunger": 30,
    "cleanliness": 30,
}


def evaluate_health(stats: PetStats, state: HealthState, now: int) -> HealthState:
    """Apply sick, recovered and dead transitions after a stat change."""
    if state.is_dead:
        return state

    if stats.health < SICK_THRESHOLD and not state.is_sick:
        state = state.model_copy(update={"is_sick": True, "sick_start_time": now})
        logger.info("pet_fell_sick", pet_id=stats.pet_id, health=stats.health)
    elif stats.health >= RECOVERY_THRESHOLD and state.is_sick:
        state = state.model_copy(update={"is_sick": False, "sick_start_time": None})
        logger.info("pet_recovered", pet_id=stats.pet_id, health=stats.health)

    if (
        stats.health == CRITICAL_HEALTH
        and state.sick_start_time is not None
        and now - state.sick_start_time >= DEATH_AFTER_MS
    ):
        state = state.model_copy(update={"is_dead": True, "death_time": now})
        logger.warning(
            "pet_died",
            pet_id=stats.pet_id,
            sick_since=state.sick_start_time,
            death_time=now,
        )

    return state


def revive(stats: PetStats, state: HealthState) -> tuple[PetStats, HealthState]:
    """Bring a dead pet back at the recovery floors.

    Experience, level and energy are kept. A pet that is not dead is
    returned unchanged.
    """
    if not state.is_dead:
        return stats, state

    logger.info("pet_revived", pet_id=stats.pet_id, death_time=state.death_time)
    return stats.replace(**REVIVAL_FLOORS), HealthState()
