"""Domain and storage models."""

from pixel_pet.models.pet import (
    AnimationState,
    GameRecord,
    GameType,
    HealthState,
    InteractionLogEntry,
    InteractionType,
    LifeStage,
    PetRecord,
    PetStats,
    Rarity,
    Snapshot,
    Species,
)
from pixel_pet.models.store import Base, StoredValue

__all__ = [
    "AnimationState",
    "Base",
    "GameRecord",
    "GameType",
    "HealthState",
    "InteractionLogEntry",
    "InteractionType",
    "LifeStage",
    "PetRecord",
    "PetStats",
    "Rarity",
    "Snapshot",
    "Species",
    "StoredValue",
]
