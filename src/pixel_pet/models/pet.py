"""Pet domain models: the record, its stats, and its histories."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

STAT_MIN = 0
STAT_MAX = 100

# Stats bounded to [STAT_MIN, STAT_MAX]; experience is only bounded below.
BOUNDED_STATS = ("hunger", "happiness", "cleanliness", "health", "energy")


def clamp_stat(value: int) -> int:
    """Clamp a bounded stat into the valid range."""
    return max(STAT_MIN, min(STAT_MAX, value))


def level_for_experience(experience: int) -> int:
    return experience // 100 + 1


class Species(str, Enum):
    """Kinds of pet that can hatch."""

    CAT = "cat"
    DOG = "dog"
    RABBIT = "rabbit"
    BIRD = "bird"
    HAMSTER = "hamster"
    FISH = "fish"


class Rarity(str, Enum):
    """Rarity tier drawn at hatch time."""

    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class LifeStage(str, Enum):
    """Life stages of the pet, in order."""

    BABY = "baby"
    ADULT = "adult"
    ELDER = "elder"


class InteractionType(str, Enum):
    """Ways the owner can care for the pet."""

    FEED = "feed"
    TOUCH = "touch"
    CLEAN = "clean"
    PLAY = "play"
    GIFT = "gift"
    SING = "sing"


class GameType(str, Enum):
    """Minigames that grant rewards."""

    MEMORY = "memory"
    REACTION = "reaction"
    PUZZLE = "puzzle"


class AnimationState(str, Enum):
    """Animation the presentation layer should play."""

    IDLE = "idle"
    HAPPY = "happy"
    SLEEPING = "sleeping"
    EATING = "eating"
    PLAYING = "playing"
    SICK = "sick"
    CLEANING = "cleaning"


class PetRecord(BaseModel):
    """A hatched pet. Times are epoch milliseconds."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    species: Species
    rarity: Rarity
    birth_time: int
    stage: LifeStage = LifeStage.BABY


class PetStats(BaseModel):
    """Current stat values of a pet.

    Bounded stats are clamped on construction, so every copy made through
    ``apply`` or ``model_validate`` stays within range. ``level`` is always
    derived from ``experience``; a stored level is ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    pet_id: str
    hunger: int = 80
    happiness: int = 90
    cleanliness: int = 100
    health: int = 100
    energy: int = 100
    experience: int = Field(default=0, ge=0)

    @field_validator(*BOUNDED_STATS)
    @classmethod
    def _clamp(cls, value: int) -> int:
        return clamp_stat(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def level(self) -> int:
        return level_for_experience(self.experience)

    def apply(self, deltas: dict[str, int]) -> "PetStats":
        """Return a copy with relative deltas applied and clamped."""
        data = self.model_dump(exclude={"level"})
        for stat, delta in deltas.items():
            if stat in BOUNDED_STATS:
                data[stat] = clamp_stat(data[stat] + delta)
            elif stat == "experience":
                data[stat] = max(0, data[stat] + delta)
        return PetStats.model_validate(data)

    def replace(self, **values: Any) -> "PetStats":
        """Return a copy with absolute values set and clamped."""
        data = self.model_dump(exclude={"level"})
        data.update(values)
        return PetStats.model_validate(data)


class HealthState(BaseModel):
    """Cached sickness and death flags derived from stats over time."""

    model_config = ConfigDict(frozen=True)

    is_sick: bool = False
    sick_start_time: int | None = None
    is_dead: bool = False
    death_time: int | None = None


class InteractionLogEntry(BaseModel):
    """A single care interaction and the deltas it applied."""

    model_config = ConfigDict(frozen=True)

    id: str
    pet_id: str
    type: InteractionType
    timestamp: int
    effect: dict[str, int]


class GameRecord(BaseModel):
    """A finished minigame and the reward it granted."""

    model_config = ConfigDict(frozen=True)

    id: str
    pet_id: str
    game_type: GameType
    score: int = Field(..., ge=0)
    reward: dict[str, int]
    timestamp: int


class Snapshot(BaseModel):
    """Everything persisted for the local profile's pet."""

    pet: PetRecord
    stats: PetStats
    health: HealthState = HealthState()
    interaction_history: list[InteractionLogEntry] = []
    game_records: list[GameRecord] = []
