"""Hatching new pets: species, rarity and name draws."""

from __future__ import annotations

import random
import uuid

from pixel_pet.models.pet import HealthState, LifeStage, PetRecord, PetStats, Rarity, Species

# Percent chance of each rarity; must sum to 100
RARITY_WEIGHTS: dict[Rarity, int] = {
    Rarity.COMMON: 60,
    Rarity.RARE: 25,
    Rarity.EPIC: 12,
    Rarity.LEGENDARY: 3,
}

NAME_POOLS: dict[Species, list[str]] = {
    Species.CAT: ["Mimi", "Blossom", "Snowball", "Tangerine", "Pudding", "Latte", "Candy", "Luna"],
    Species.DOG: ["Whitey", "Lucky", "Bean", "Bubbles", "Fluffy", "Joy", "Bebe", "Nini"],
    Species.RABBIT: ["Snowy", "Hopper", "Carrot", "Fuzzball", "Flake", "Cotton", "Softie", "Boing"],
    Species.BIRD: ["Sunny", "Chirpy", "Rainbow", "Melody", "Wings", "Sky", "Freedom", "Songbird"],
    Species.HAMSTER: ["Peanut", "Nutty", "Roly", "Pouch", "Millet", "Beanie", "Chubby", "Stash"],
    Species.FISH: ["Bubble", "Swimmy", "Goldie", "Splash", "Pearl", "Ocean", "Azure", "Ripple"],
}

INITIAL_STATS = {
    "hunger": 80,
    "happiness": 90,
    "cleanliness": 100,
    "health": 100,
    "energy": 100,
    "experience": 0,
}


def rarity_for_draw(draw: float) -> Rarity:
    """Map a uniform draw in [0, 100) onto the cumulative rarity table."""
    cumulative = 0
    for rarity, weight in RARITY_WEIGHTS.items():
        cumulative += weight
        if draw <= cumulative:
            return rarity
    return Rarity.COMMON


def draw_rarity(rng: random.Random) -> Rarity:
    return rarity_for_draw(rng.random() * 100)


def draw_species(rng: random.Random) -> Species:
    return rng.choice(list(Species))


def draw_name(species: Species, rng: random.Random) -> str:
    return rng.choice(NAME_POOLS[species])


def hatch_pet(
    now: int,
    rng: random.Random,
    *,
    name: str | None = None,
    species: Species | None = None,
) -> tuple[PetRecord, PetStats, HealthState]:
    """Create a fresh baby pet with starting stats."""
    species = species or draw_species(rng)
    pet = PetRecord(
        id=f"pet_{uuid.uuid4().hex}",
        name=name or draw_name(species, rng),
        species=species,
        rarity=draw_rarity(rng),
        birth_time=now,
        stage=LifeStage.BABY,
    )
    stats = PetStats(pet_id=pet.id, **INITIAL_STATS)
    return pet, stats, HealthState()
