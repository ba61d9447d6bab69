"""Single writer for the local pet snapshot.

``PetService`` keeps the snapshot in memory and treats storage as a mirror.
Every mutation runs under one lock, so an interaction can never read a
snapshot that an in-flight reconciliation is about to replace. Storage
failures are logged and the in-memory state stays authoritative.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable

import structlog
from sqlalchemy.exc import SQLAlchemyError

from pixel_pet.core.clock import Clock, system_clock
from pixel_pet.core.config import Settings, TimeSettings, settings
from pixel_pet.core.database import async_session_factory
from pixel_pet.models.pet import (
    GameRecord,
    GameType,
    InteractionLogEntry,
    InteractionType,
    PetStats,
    Snapshot,
    Species,
)
from pixel_pet.services.hatchery import hatch_pet
from pixel_pet.services.health import evaluate_health, revive
from pixel_pet.services.interactions import (
    apply_interaction,
    cooldown_remaining,
    is_full,
    push_bounded,
    record_game,
)
from pixel_pet.services.offline import MIN_OFFLINE_MINUTES, ReconcileResult, reconcile
from pixel_pet.services.storage import ProfileStore

logger = structlog.get_logger()


class PetError(Exception):
    """Base class for refused pet operations."""


class NoPetError(PetError):
    """No pet has been hatched yet."""


class PetAlreadyExistsError(PetError):
    """A pet already lives in this profile."""


class PetIsDeadError(PetError):
    """The pet is dead and must be revived first."""


class PetNotDeadError(PetError):
    """Only a dead pet can be revived."""


class PetIsFullError(PetError):
    """The pet is too full to eat."""


class CooldownActiveError(PetError):
    """Raised when an interaction is used again too soon."""

    def __init__(self, interaction_type: InteractionType, remaining_seconds: int) -> None:
        self.interaction_type = interaction_type
        self.remaining_seconds = remaining_seconds
        super().__init__(f"{interaction_type.value} is on cooldown for {remaining_seconds}s")


class PetService:
    """Owns the pet snapshot and serializes every change to it."""

    def __init__(
        self,
        store: ProfileStore,
        clock: Clock = system_clock,
        app_settings: Settings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.settings = app_settings or settings
        self.rng = rng or random.Random()

        self._lock = asyncio.Lock()
        self._loaded = False
        self._snapshot: Snapshot | None = None
        self._time_settings: TimeSettings | None = None
        self._last_update_time: int | None = None

    async def _persist(self, operation: str, write: Awaitable[None]) -> None:
        """Run a storage write, logging instead of raising on failure."""
        try:
            await write
        except SQLAlchemyError as e:
            logger.error("snapshot_write_failed", operation=operation, error=str(e))

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            self._snapshot = await self.store.load_snapshot()
            self._last_update_time = await self.store.get_last_update_time()
            self._time_settings = await self.store.load_time_settings(
                TimeSettings.from_settings(self.settings)
            )
        except SQLAlchemyError as e:
            logger.error("snapshot_load_failed", error=str(e))
            self._snapshot = None
            self._last_update_time = None
            self._time_settings = TimeSettings.from_settings(self.settings)
        self._loaded = True
        logger.info("snapshot_loaded", has_pet=self._snapshot is not None)

    def _require_pet(self) -> Snapshot:
        if self._snapshot is None:
            raise NoPetError("no pet has been hatched")
        return self._snapshot

    def _require_alive(self) -> Snapshot:
        snapshot = self._require_pet()
        if snapshot.health.is_dead:
            raise PetIsDeadError(f"{snapshot.pet.name} needs to be revived first")
        return snapshot

    async def get_snapshot(self) -> Snapshot | None:
        async with self._lock:
            await self._ensure_loaded()
            return self._snapshot

    async def get_time_settings(self) -> TimeSettings:
        async with self._lock:
            await self._ensure_loaded()
            assert self._time_settings is not None
            return self._time_settings

    async def update_time_settings(self, time_settings: TimeSettings) -> TimeSettings:
        async with self._lock:
            await self._ensure_loaded()
            self._time_settings = time_settings
            await self._persist("save_time_settings", self.store.save_time_settings(time_settings))
            logger.info(
                "time_settings_updated",
                time_speed=time_settings.time_speed,
                offline_calculation_enabled=time_settings.offline_calculation_enabled,
            )
            return time_settings

    async def hatch(self, name: str | None = None, species: Species | None = None) -> Snapshot:
        """Hatch a new pet into an empty profile."""
        async with self._lock:
            await self._ensure_loaded()
            if self._snapshot is not None:
                raise PetAlreadyExistsError(f"{self._snapshot.pet.name} already lives here")

            now = self.clock()
            pet, stats, health = hatch_pet(now, self.rng, name=name, species=species)
            self._snapshot = Snapshot(pet=pet, stats=stats, health=health)
            self._last_update_time = now

            await self._persist("hatch", self.store.save_snapshot(pet, stats, health))
            await self._persist("hatch", self.store.set_last_update_time(now))
            logger.info(
                "pet_hatched",
                pet_id=pet.id,
                pet_name=pet.name,
                species=pet.species.value,
                rarity=pet.rarity.value,
            )
            return self._snapshot

    async def reconcile(
        self, *, accumulate_short_absences: bool = False
    ) -> tuple[Snapshot, ReconcileResult] | None:
        """Catch the pet up with the time that passed since the last update.

        Returns the updated snapshot and what changed, or None when there is
        no pet. The last update time is advanced, so the same stretch of time
        is never applied twice. With ``accumulate_short_absences`` a stretch
        too short to apply is left to add up with the next one instead of
        being forgiven; periodic runs use this so time between ticks is kept.
        """
        async with self._lock:
            await self._ensure_loaded()
            if self._snapshot is None:
                return None
            assert self._time_settings is not None

            snapshot = self._snapshot
            now = self.clock()
            last_update_time = self._last_update_time
            if last_update_time is None:
                last_update_time = snapshot.pet.birth_time

            result = reconcile(
                snapshot.pet,
                snapshot.stats,
                now=now,
                last_update_time=last_update_time,
                time_settings=self._time_settings,
            )
            pet = result.updated_pet or snapshot.pet
            health = evaluate_health(result.updated_stats, snapshot.health, now)
            self._snapshot = snapshot.model_copy(
                update={"pet": pet, "stats": result.updated_stats, "health": health}
            )

            applied = result.offline_minutes >= MIN_OFFLINE_MINUTES
            if applied:
                await self._persist(
                    "reconcile",
                    self.store.save_snapshot(result.updated_pet, result.updated_stats, health),
                )
            elif health != snapshot.health:
                await self._persist("reconcile", self.store.save_snapshot(health=health))

            held_back = (
                accumulate_short_absences
                and self._time_settings.offline_calculation_enabled
                and not applied
            )
            if held_back:
                logger.debug(
                    "offline_time_deferred",
                    pet_id=pet.id,
                    offline_minutes=result.offline_minutes,
                )
            else:
                self._last_update_time = now
                await self._persist("reconcile", self.store.set_last_update_time(now))

            return self._snapshot, result

    def _apply_stats(self, snapshot: Snapshot, stats: PetStats, now: int) -> Snapshot:
        """Swap in new stats and re-evaluate health."""
        health = evaluate_health(stats, snapshot.health, now)
        updated = snapshot.model_copy(update={"stats": stats, "health": health})
        self._snapshot = updated
        return updated

    async def interact(
        self, interaction_type: InteractionType
    ) -> tuple[Snapshot, InteractionLogEntry]:
        """Apply a care interaction, honouring its cooldown."""
        async with self._lock:
            await self._ensure_loaded()
            snapshot = self._require_alive()
            now = self.clock()

            remaining = cooldown_remaining(snapshot.interaction_history, interaction_type, now)
            if remaining > 0:
                raise CooldownActiveError(interaction_type, remaining)
            if interaction_type is InteractionType.FEED and is_full(snapshot.stats):
                raise PetIsFullError(f"{snapshot.pet.name} is not hungry")

            stats, entry = apply_interaction(snapshot.stats, interaction_type, now)
            history = push_bounded(
                snapshot.interaction_history, entry, self.settings.interaction_history_limit
            )
            snapshot = snapshot.model_copy(update={"interaction_history": history})
            snapshot = self._apply_stats(snapshot, stats, now)
            await self._persist(
                "interact",
                self.store.save_snapshot(
                    stats=snapshot.stats, health=snapshot.health, interaction_history=history
                ),
            )

            logger.info(
                "pet_interaction",
                pet_id=snapshot.pet.id,
                interaction=interaction_type.value,
                effect=entry.effect,
            )
            return snapshot, entry

    async def play_game(self, game_type: GameType, score: int) -> tuple[Snapshot, GameRecord]:
        """Record a finished minigame and grant its reward."""
        async with self._lock:
            await self._ensure_loaded()
            snapshot = self._require_alive()
            now = self.clock()

            stats, record = record_game(snapshot.stats, game_type, score, now)
            records = push_bounded(snapshot.game_records, record, self.settings.game_history_limit)
            snapshot = snapshot.model_copy(update={"game_records": records})
            snapshot = self._apply_stats(snapshot, stats, now)
            await self._persist(
                "play_game",
                self.store.save_snapshot(
                    stats=snapshot.stats, health=snapshot.health, game_records=records
                ),
            )

            logger.info(
                "game_recorded",
                pet_id=snapshot.pet.id,
                game_type=game_type.value,
                score=score,
                reward=record.reward,
            )
            return snapshot, record

    async def revive(self) -> Snapshot:
        async with self._lock:
            await self._ensure_loaded()
            snapshot = self._require_pet()
            if not snapshot.health.is_dead:
                raise PetNotDeadError(f"{snapshot.pet.name} is not dead")

            stats, health = revive(snapshot.stats, snapshot.health)
            self._snapshot = snapshot.model_copy(update={"stats": stats, "health": health})
            await self._persist("revive", self.store.save_snapshot(stats=stats, health=health))
            return self._snapshot

    async def reset(self) -> None:
        """Delete the pet so a new one can hatch."""
        async with self._lock:
            await self._ensure_loaded()
            self._snapshot = None
            self._last_update_time = None
            await self._persist("reset", self.store.clear())
            logger.info("pet_reset")


_pet_service: PetService | None = None


def get_pet_service() -> PetService:
    """Process-wide pet service bound to the configured database."""
    global _pet_service
    if _pet_service is None:
        _pet_service = PetService(ProfileStore(async_session_factory))
    return _pet_service
