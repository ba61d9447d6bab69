"""Local profile storage for the pet snapshot and settings."""

from typing import Any, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pixel_pet.core.config import TimeSettings
from pixel_pet.models.pet import (
    GameRecord,
    HealthState,
    InteractionLogEntry,
    PetRecord,
    PetStats,
    Snapshot,
)
from pixel_pet.models.store import StoredValue

logger = structlog.get_logger()

T = TypeVar("T")

PET_KEY = "pet"
STATS_KEY = "stats"
HEALTH_KEY = "health"
INTERACTION_HISTORY_KEY = "interaction_history"
GAME_RECORDS_KEY = "game_records"
LAST_UPDATE_TIME_KEY = "last_update_time"
TIME_SPEED_KEY = "time_speed"
OFFLINE_CALCULATION_KEY = "offline_calculation"

# Keys removed when the pet is reset; settings survive a reset
PROFILE_KEYS = (
    PET_KEY,
    STATS_KEY,
    HEALTH_KEY,
    INTERACTION_HISTORY_KEY,
    GAME_RECORDS_KEY,
    LAST_UPDATE_TIME_KEY,
)

_pet_adapter = TypeAdapter(PetRecord)
_stats_adapter = TypeAdapter(PetStats)
_health_adapter = TypeAdapter(HealthState)
_interactions_adapter = TypeAdapter(list[InteractionLogEntry])
_games_adapter = TypeAdapter(list[GameRecord])
_int_adapter = TypeAdapter(int)
_float_adapter = TypeAdapter(float)
_bool_adapter = TypeAdapter(bool)


class ProfileStore:
    """Key-value store holding one local profile.

    Every entry is JSON text and can be read or written on its own. Values
    that fail to decode are logged and treated as absent.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_raw(self, key: str) -> str | None:
        async with self.session_factory() as session:
            result = await session.execute(select(StoredValue.value).where(StoredValue.key == key))
            return result.scalar_one_or_none()

    async def set_many(self, values: dict[str, str]) -> None:
        """Write several entries in one transaction."""
        async with self.session_factory() as session:
            for key, value in values.items():
                row = await session.get(StoredValue, key)
                if row is None:
                    session.add(StoredValue(key=key, value=value))
                else:
                    row.value = value
            await session.commit()

    async def delete_keys(self, *keys: str) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(StoredValue).where(StoredValue.key.in_(keys)))
            await session.commit()

    async def _read(self, key: str, adapter: TypeAdapter[T]) -> T | None:
        raw = await self.get_raw(key)
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("stored_value_malformed", key=key, error=str(e))
            return None

    @staticmethod
    def _encode(adapter: TypeAdapter[Any], value: Any) -> str:
        return adapter.dump_json(value).decode("utf-8")

    async def load_snapshot(self) -> Snapshot | None:
        """Read the persisted pet, or None when no usable pet is stored."""
        pet = await self._read(PET_KEY, _pet_adapter)
        stats = await self._read(STATS_KEY, _stats_adapter)
        if pet is None or stats is None:
            return None

        if stats.pet_id != pet.id:
            logger.warning("stored_stats_mismatch", pet_id=pet.id, stats_pet_id=stats.pet_id)
            return None

        return Snapshot(
            pet=pet,
            stats=stats,
            health=await self._read(HEALTH_KEY, _health_adapter) or HealthState(),
            interaction_history=await self._read(INTERACTION_HISTORY_KEY, _interactions_adapter)
            or [],
            game_records=await self._read(GAME_RECORDS_KEY, _games_adapter) or [],
        )

    async def save_snapshot(
        self,
        pet: PetRecord | None = None,
        stats: PetStats | None = None,
        health: HealthState | None = None,
        interaction_history: list[InteractionLogEntry] | None = None,
        game_records: list[GameRecord] | None = None,
    ) -> None:
        """Persist whichever parts of the snapshot are given, in one transaction."""
        values: dict[str, str] = {}
        if pet is not None:
            values[PET_KEY] = self._encode(_pet_adapter, pet)
        if stats is not None:
            values[STATS_KEY] = self._encode(_stats_adapter, stats)
        if health is not None:
            values[HEALTH_KEY] = self._encode(_health_adapter, health)
        if interaction_history is not None:
            values[INTERACTION_HISTORY_KEY] = self._encode(
                _interactions_adapter, interaction_history
            )
        if game_records is not None:
            values[GAME_RECORDS_KEY] = self._encode(_games_adapter, game_records)
        if values:
            await self.set_many(values)

    async def get_last_update_time(self) -> int | None:
        return await self._read(LAST_UPDATE_TIME_KEY, _int_adapter)

    async def set_last_update_time(self, timestamp: int) -> None:
        await self.set_many({LAST_UPDATE_TIME_KEY: self._encode(_int_adapter, timestamp)})

    async def load_time_settings(self, defaults: TimeSettings) -> TimeSettings:
        """Read the time knobs, falling back to ``defaults`` per knob."""
        time_speed = await self._read(TIME_SPEED_KEY, _float_adapter)
        offline = await self._read(OFFLINE_CALCULATION_KEY, _bool_adapter)
        try:
            return TimeSettings(
                time_speed=defaults.time_speed if time_speed is None else time_speed,
                offline_calculation_enabled=(
                    defaults.offline_calculation_enabled if offline is None else offline
                ),
            )
        except ValidationError as e:
            logger.warning("stored_settings_invalid", error=str(e))
            return defaults

    async def save_time_settings(self, time_settings: TimeSettings) -> None:
        await self.set_many(
            {
                TIME_SPEED_KEY: self._encode(_float_adapter, time_settings.time_speed),
                OFFLINE_CALCULATION_KEY: self._encode(
                    _bool_adapter, time_settings.offline_calculation_enabled
                ),
            }
        )

    async def clear(self) -> None:
        """Delete the pet and its histories, keeping the settings."""
        await self.delete_keys(*PROFILE_KEYS)
        logger.info("profile_cleared")
