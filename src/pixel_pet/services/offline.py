"""Offline time reconciliation.

Catches a persisted pet up to the present instant: decays its stats and
grows it for the time the app was closed, and describes what changed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from pixel_pet.core.clock import MS_PER_MINUTE
from pixel_pet.core.config import MIN_OFFLINE_MINUTES, TimeSettings
from pixel_pet.models.pet import LifeStage, PetRecord, PetStats
from pixel_pet.services.pet_logic import calculate_growth, calculate_status_decay

logger = structlog.get_logger()

MAX_OFFLINE_MINUTES = 24 * 60  # Offline effects never exceed one day
OFFLINE_SUMMARY_MINUTES = 30  # UI shows a summary above this

TOO_SHORT_MESSAGE = "Offline time too short, stats unchanged"

STAT_LABELS = {
    "health": "Health",
    "happiness": "Happiness",
    "hunger": "Fullness",
    "cleanliness": "Cleanliness",
}

STAGE_NAMES = {
    LifeStage.BABY: "Baby",
    LifeStage.ADULT: "Adult",
    LifeStage.ELDER: "Elder",
}


@dataclass
class ReconcileResult:
    """Outcome of catching a pet up to the present."""

    updated_stats: PetStats
    offline_minutes: int
    updated_pet: PetRecord | None = None
    change_log: list[str] = field(default_factory=list)

    @property
    def show_offline_summary(self) -> bool:
        return self.offline_minutes > OFFLINE_SUMMARY_MINUTES


def get_offline_minutes(now: int, last_update_time: int, time_settings: TimeSettings) -> int:
    """Whole minutes since the last update, clamped to [0, MAX_OFFLINE_MINUTES]."""
    if not time_settings.offline_calculation_enabled:
        return 0

    # Clock skew can make this negative
    elapsed_ms = max(0, now - last_update_time)
    return min(elapsed_ms // MS_PER_MINUTE, MAX_OFFLINE_MINUTES)


def reconcile(
    pet: PetRecord,
    stats: PetStats,
    *,
    now: int,
    last_update_time: int,
    time_settings: TimeSettings,
) -> ReconcileResult:
    """Apply offline decay and growth to a pet snapshot.

    Pure: persisting the result and advancing the stored last update time
    is the caller's job.
    """
    offline_minutes = get_offline_minutes(now, last_update_time, time_settings)

    if offline_minutes <= 0:
        return ReconcileResult(updated_stats=stats, offline_minutes=0)

    if offline_minutes < MIN_OFFLINE_MINUTES:
        return ReconcileResult(
            updated_stats=stats,
            offline_minutes=offline_minutes,
            change_log=[TOO_SHORT_MESSAGE],
        )

    change_log: list[str] = []
    time_speed = time_settings.time_speed

    decayed = calculate_status_decay(stats, offline_minutes, time_speed)
    for stat, new_value in decayed.items():
        old_value = getattr(stats, stat)
        if new_value < old_value:
            change_log.append(f"{STAT_LABELS[stat]} dropped by {old_value - new_value}")

    growth = calculate_growth(pet, offline_minutes, time_speed, now)
    values = dict(decayed)
    if growth.experience_gain > 0:
        values["experience"] = stats.experience + growth.experience_gain
        change_log.append(f"Gained {growth.experience_gain} experience")

    updated_stats = stats.replace(**values)

    updated_pet = None
    if growth.new_stage is not None:
        updated_pet = pet.model_copy(update={"stage": growth.new_stage})
        change_log.append(f"Grew into the {STAGE_NAMES[growth.new_stage]} stage")
        logger.info(
            "pet_evolved",
            pet_id=pet.id,
            pet_name=pet.name,
            old_stage=pet.stage.value,
            new_stage=growth.new_stage.value,
        )

    logger.info(
        "offline_reconciled",
        pet_id=pet.id,
        offline_minutes=offline_minutes,
        time_speed=time_speed,
        experience_gained=growth.experience_gain,
        changes=len(change_log),
    )

    return ReconcileResult(
        updated_stats=updated_stats,
        updated_pet=updated_pet,
        offline_minutes=offline_minutes,
        change_log=change_log,
    )


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_offline_time(minutes: int) -> str:
    """Render an offline duration for the welcome-back summary."""
    if minutes < 60:
        return _plural(minutes, "minute")

    if minutes < 24 * 60:
        hours, remaining_minutes = divmod(minutes, 60)
        if remaining_minutes:
            return f"{_plural(hours, 'hour')} {_plural(remaining_minutes, 'minute')}"
        return _plural(hours, "hour")

    days, rest = divmod(minutes, 24 * 60)
    remaining_hours = rest // 60
    if remaining_hours:
        return f"{_plural(days, 'day')} {_plural(remaining_hours, 'hour')}"
    return _plural(days, "day")
