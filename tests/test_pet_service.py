"""Tests for the pet service."""

import asyncio
import random
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from pixel_pet.core.clock import MS_PER_HOUR, ManualClock
from pixel_pet.core.config import Settings, TimeSettings
from pixel_pet.models.pet import (
    GameType,
    HealthState,
    InteractionType,
    PetRecord,
    PetStats,
    Species,
)
from pixel_pet.services.pet_service import (
    CooldownActiveError,
    NoPetError,
    PetAlreadyExistsError,
    PetIsDeadError,
    PetIsFullError,
    PetNotDeadError,
    PetService,
)
from pixel_pet.services.storage import ProfileStore
from tests.conftest import BASE_TIME


def _disk_full() -> OperationalError:
    return OperationalError("INSERT", {}, Exception("disk full"))


@pytest.fixture
async def hatched(pet_service: PetService) -> PetService:
    """A service with a freshly hatched cat named Mimi."""
    await pet_service.hatch(name="Mimi", species=Species.CAT)
    return pet_service


@pytest.fixture
async def dead_pet_service(
    profile_store: ProfileStore,
    clock: ManualClock,
    app_settings: Settings,
    baby_pet: PetRecord,
) -> PetService:
    """A service whose stored pet has been sick at zero health for over a day."""
    await profile_store.save_snapshot(
        baby_pet,
        PetStats(pet_id=baby_pet.id, health=0, experience=450),
        HealthState(is_sick=True, sick_start_time=BASE_TIME - 25 * MS_PER_HOUR),
    )
    await profile_store.set_last_update_time(BASE_TIME)
    service = PetService(profile_store, clock=clock, app_settings=app_settings)
    await service.reconcile()
    return service


class TestHatch:
    """Tests for hatching."""

    async def test_no_pet_before_hatching(self, pet_service: PetService) -> None:
        assert await pet_service.get_snapshot() is None

    async def test_hatch_creates_baby(self, pet_service: PetService) -> None:
        snapshot = await pet_service.hatch(name="Mimi", species=Species.CAT)

        assert snapshot.pet.name == "Mimi"
        assert snapshot.pet.birth_time == BASE_TIME
        assert snapshot.stats.hunger == 80
        assert await pet_service.get_snapshot() == snapshot

    async def test_hatch_is_persisted(
        self, hatched: PetService, profile_store: ProfileStore
    ) -> None:
        stored = await profile_store.load_snapshot()
        assert stored == await hatched.get_snapshot()
        assert await profile_store.get_last_update_time() == BASE_TIME

    async def test_second_hatch_is_refused(self, hatched: PetService) -> None:
        with pytest.raises(PetAlreadyExistsError):
            await hatched.hatch()


class TestReconcile:
    """Tests for reconciling through the service."""

    async def test_without_pet_returns_none(self, pet_service: PetService) -> None:
        assert await pet_service.reconcile() is None

    async def test_two_hours_away(self, hatched: PetService, clock: ManualClock) -> None:
        clock.advance(hours=2)

        outcome = await hatched.reconcile()

        assert outcome is not None
        snapshot, result = outcome
        assert result.offline_minutes == 120
        assert await hatched.get_snapshot() == snapshot
        assert snapshot.stats.hunger == 70
        assert snapshot.stats.health == 96
        assert snapshot.stats.experience == 2

    async def test_result_is_persisted(
        self,
        hatched: PetService,
        clock: ManualClock,
        profile_store: ProfileStore,
        app_settings: Settings,
    ) -> None:
        """Test that a restarted service sees the reconciled stats."""
        clock.advance(hours=3)
        await hatched.reconcile()

        restarted = PetService(profile_store, clock=clock, app_settings=app_settings)
        assert await restarted.get_snapshot() == await hatched.get_snapshot()
        assert await profile_store.get_last_update_time() == clock()

    async def test_repeat_reconcile_is_noop(
        self, hatched: PetService, clock: ManualClock
    ) -> None:
        clock.advance(hours=5)
        await hatched.reconcile()
        first = await hatched.get_snapshot()

        outcome = await hatched.reconcile()

        assert outcome is not None
        _, result = outcome
        assert result.offline_minutes == 0
        assert await hatched.get_snapshot() == first

    async def test_short_absences_are_forgiven_each_time(
        self, hatched: PetService, clock: ManualClock, profile_store: ProfileStore
    ) -> None:
        """Test that the clock advances even when stats stay unchanged."""
        before = await hatched.get_snapshot()

        for _ in range(3):
            clock.advance(minutes=20)
            outcome = await hatched.reconcile()
            assert outcome is not None
            _, result = outcome
            assert result.offline_minutes == 20

        assert await hatched.get_snapshot() == before
        assert await profile_store.get_last_update_time() == BASE_TIME + 60 * 60 * 1000

    async def test_short_stretches_can_accumulate(
        self, hatched: PetService, clock: ManualClock, profile_store: ProfileStore
    ) -> None:
        """Test that a held back stretch is applied together with the next one."""
        clock.advance(minutes=20)
        outcome = await hatched.reconcile(accumulate_short_absences=True)
        assert outcome is not None
        assert outcome[0].stats.hunger == 80
        assert await profile_store.get_last_update_time() == BASE_TIME

        clock.advance(minutes=20)
        outcome = await hatched.reconcile(accumulate_short_absences=True)

        assert outcome is not None
        snapshot, result = outcome
        assert result.offline_minutes == 40
        assert snapshot.stats.hunger == 77
        assert await profile_store.get_last_update_time() == clock()

    async def test_paused_time_is_not_accumulated(
        self, hatched: PetService, clock: ManualClock
    ) -> None:
        """Test that holding back short stretches never defers paused time."""
        before = await hatched.get_snapshot()
        await hatched.update_time_settings(TimeSettings(offline_calculation_enabled=False))
        clock.advance(hours=5)
        await hatched.reconcile(accumulate_short_absences=True)

        await hatched.update_time_settings(TimeSettings(offline_calculation_enabled=True))
        await hatched.reconcile(accumulate_short_absences=True)

        assert await hatched.get_snapshot() == before

    async def test_time_speed_is_applied(self, hatched: PetService, clock: ManualClock) -> None:
        await hatched.update_time_settings(TimeSettings(time_speed=2.0))
        clock.advance(hours=1)

        await hatched.reconcile()

        snapshot = await hatched.get_snapshot()
        assert snapshot is not None
        assert snapshot.stats.hunger == 70

    async def test_disabled_offline_calculation_pauses_time(
        self, hatched: PetService, clock: ManualClock
    ) -> None:
        """Test that time spent with offline calculation off is never applied later."""
        before = await hatched.get_snapshot()
        await hatched.update_time_settings(TimeSettings(offline_calculation_enabled=False))
        clock.advance(hours=5)
        await hatched.reconcile()

        await hatched.update_time_settings(TimeSettings(offline_calculation_enabled=True))
        outcome = await hatched.reconcile()

        assert outcome is not None
        _, result = outcome
        assert result.offline_minutes == 0
        assert await hatched.get_snapshot() == before

    async def test_falls_back_to_birth_time(
        self,
        profile_store: ProfileStore,
        clock: ManualClock,
        baby_pet: PetRecord,
        fresh_stats: PetStats,
    ) -> None:
        """Test that a pet with no stored update time is reconciled from birth."""
        await profile_store.save_snapshot(baby_pet, fresh_stats)
        service = PetService(profile_store, clock=clock)

        outcome = await service.reconcile()

        assert outcome is not None
        _, result = outcome
        assert result.offline_minutes == 5 * 60

    async def test_pet_dies_during_reconcile(self, dead_pet_service: PetService) -> None:
        snapshot = await dead_pet_service.get_snapshot()
        assert snapshot is not None
        assert snapshot.health.is_dead is True
        assert snapshot.health.death_time == BASE_TIME


class TestStorageFailures:
    """Tests for storage failures while the pet keeps living in memory."""

    async def test_failed_write_keeps_memory_state(
        self, hatched: PetService, clock: ManualClock, profile_store: ProfileStore
    ) -> None:
        stored_before = await profile_store.load_snapshot()
        clock.advance(hours=2)

        with patch.object(
            profile_store, "save_snapshot", AsyncMock(side_effect=_disk_full())
        ):
            outcome = await hatched.reconcile()

        assert outcome is not None
        assert await hatched.get_snapshot() == outcome[0]
        assert outcome[0].stats.hunger == 70
        assert await profile_store.load_snapshot() == stored_before

    async def test_failed_write_does_not_double_count_time(
        self, hatched: PetService, clock: ManualClock, profile_store: ProfileStore
    ) -> None:
        clock.advance(hours=2)
        with patch.object(
            profile_store, "set_last_update_time", AsyncMock(side_effect=_disk_full())
        ):
            await hatched.reconcile()

        outcome = await hatched.reconcile()

        assert outcome is not None
        _, result = outcome
        assert result.offline_minutes == 0

    async def test_failed_load_starts_empty(
        self, profile_store: ProfileStore, clock: ManualClock
    ) -> None:
        service = PetService(profile_store, clock=clock)
        with patch.object(
            profile_store, "load_snapshot", AsyncMock(side_effect=_disk_full())
        ):
            assert await service.get_snapshot() is None
        assert await service.get_time_settings() == TimeSettings()


class TestInteract:
    """Tests for care interactions."""

    async def test_interaction_applies_effects(self, hatched: PetService) -> None:
        snapshot, entry = await hatched.interact(InteractionType.CLEAN)

        assert entry.type == InteractionType.CLEAN
        assert snapshot.stats.happiness == 98
        assert snapshot.stats.experience == 3
        assert snapshot.interaction_history == [entry]

    async def test_without_pet_is_refused(self, pet_service: PetService) -> None:
        with pytest.raises(NoPetError):
            await pet_service.interact(InteractionType.TOUCH)

    async def test_cooldown(self, hatched: PetService, clock: ManualClock) -> None:
        await hatched.interact(InteractionType.TOUCH)

        with pytest.raises(CooldownActiveError) as exc_info:
            await hatched.interact(InteractionType.TOUCH)
        assert exc_info.value.remaining_seconds == 10

        clock.advance(minutes=1)
        await hatched.interact(InteractionType.TOUCH)

    async def test_cooldown_is_per_type(self, hatched: PetService) -> None:
        await hatched.interact(InteractionType.TOUCH)
        await hatched.interact(InteractionType.SING)

    async def test_full_pet_refuses_food(self, hatched: PetService, clock: ManualClock) -> None:
        snapshot, _ = await hatched.interact(InteractionType.FEED)
        assert snapshot.stats.hunger == 100

        clock.advance(minutes=1)
        with pytest.raises(PetIsFullError):
            await hatched.interact(InteractionType.FEED)

    async def test_history_is_bounded(self, hatched: PetService, clock: ManualClock) -> None:
        """Test that only the newest five interactions are kept."""
        for _ in range(7):
            await hatched.interact(InteractionType.TOUCH)
            clock.advance(minutes=1)

        snapshot = await hatched.get_snapshot()
        assert snapshot is not None
        assert len(snapshot.interaction_history) == 5
        timestamps = [entry.timestamp for entry in snapshot.interaction_history]
        assert timestamps == sorted(timestamps, reverse=True)

    async def test_history_is_persisted(
        self, hatched: PetService, profile_store: ProfileStore
    ) -> None:
        _, entry = await hatched.interact(InteractionType.GIFT)

        stored = await profile_store.load_snapshot()
        assert stored is not None
        assert stored.interaction_history == [entry]

    async def test_stats_and_history_are_written_together(
        self, hatched: PetService, profile_store: ProfileStore
    ) -> None:
        """Test that the effect and its cooldown entry land in one transaction."""
        with patch.object(
            profile_store, "set_many", AsyncMock(wraps=profile_store.set_many)
        ) as set_many:
            await hatched.interact(InteractionType.SING)

        set_many.assert_awaited_once()
        assert set(set_many.await_args.args[0]) == {"stats", "health", "interaction_history"}

    async def test_failed_write_cannot_bypass_cooldown_after_restart(
        self,
        hatched: PetService,
        clock: ManualClock,
        profile_store: ProfileStore,
        app_settings: Settings,
    ) -> None:
        """Test that stored stats never carry an effect whose history entry is missing."""
        stored_before = await profile_store.load_snapshot()
        with patch.object(profile_store, "set_many", AsyncMock(side_effect=_disk_full())):
            await hatched.interact(InteractionType.GIFT)

        restarted = PetService(profile_store, clock=clock, app_settings=app_settings)
        assert await restarted.get_snapshot() == stored_before

    async def test_dead_pet_is_refused(self, dead_pet_service: PetService) -> None:
        with pytest.raises(PetIsDeadError):
            await dead_pet_service.interact(InteractionType.TOUCH)

    async def test_interaction_during_reconcile_is_serialized(
        self, hatched: PetService, clock: ManualClock
    ) -> None:
        """Test that neither change is lost when both run at once."""
        clock.advance(hours=2)

        await asyncio.gather(hatched.reconcile(), hatched.interact(InteractionType.TOUCH))

        snapshot = await hatched.get_snapshot()
        assert snapshot is not None
        assert snapshot.stats.experience == 3
        assert len(snapshot.interaction_history) == 1


class TestPlayGame:
    """Tests for minigames."""

    async def test_game_grants_reward(self, hatched: PetService) -> None:
        snapshot, record = await hatched.play_game(GameType.MEMORY, 6)

        assert record.reward == {"experience": 10, "happiness": 20}
        assert snapshot.stats.experience == 10
        assert snapshot.game_records == [record]

    async def test_game_records_are_bounded(self, hatched: PetService) -> None:
        for score in range(4):
            await hatched.play_game(GameType.REACTION, score)

        snapshot = await hatched.get_snapshot()
        assert snapshot is not None
        assert [record.score for record in snapshot.game_records] == [3, 2, 1]

    async def test_reward_and_record_are_written_together(
        self, hatched: PetService, profile_store: ProfileStore
    ) -> None:
        with patch.object(
            profile_store, "set_many", AsyncMock(wraps=profile_store.set_many)
        ) as set_many:
            await hatched.play_game(GameType.PUZZLE, 5000)

        set_many.assert_awaited_once()
        assert set(set_many.await_args.args[0]) == {"stats", "health", "game_records"}

    async def test_dead_pet_cannot_play(self, dead_pet_service: PetService) -> None:
        with pytest.raises(PetIsDeadError):
            await dead_pet_service.play_game(GameType.PUZZLE, 100)


class TestRevive:
    """Tests for reviving through the service."""

    async def test_revive_dead_pet(
        self, dead_pet_service: PetService, profile_store: ProfileStore
    ) -> None:
        snapshot = await dead_pet_service.revive()

        assert snapshot.health == HealthState()
        assert snapshot.stats.health == 50
        assert snapshot.stats.experience == 450
        assert snapshot.stats.level == 5
        stored = await profile_store.load_snapshot()
        assert stored is not None
        assert stored.health == HealthState()

    async def test_living_pet_cannot_be_revived(self, hatched: PetService) -> None:
        with pytest.raises(PetNotDeadError):
            await hatched.revive()

    async def test_revive_without_pet(self, pet_service: PetService) -> None:
        with pytest.raises(NoPetError):
            await pet_service.revive()


class TestResetAndSettings:
    """Tests for resetting the profile and changing settings."""

    async def test_reset_allows_new_hatch(
        self, hatched: PetService, profile_store: ProfileStore
    ) -> None:
        await hatched.reset()

        assert await hatched.get_snapshot() is None
        assert await profile_store.load_snapshot() is None
        snapshot = await hatched.hatch(name="Peanut", species=Species.HAMSTER)
        assert snapshot.pet.name == "Peanut"

    async def test_reset_keeps_settings(self, hatched: PetService) -> None:
        slow = TimeSettings(time_speed=0.5)
        await hatched.update_time_settings(slow)

        await hatched.reset()

        assert await hatched.get_time_settings() == slow

    async def test_settings_defaults_come_from_app_settings(
        self, profile_store: ProfileStore
    ) -> None:
        service = PetService(
            profile_store,
            app_settings=Settings(default_time_speed=1.5, default_offline_calculation=False),
            rng=random.Random(1),
        )
        assert await service.get_time_settings() == TimeSettings(
            time_speed=1.5, offline_calculation_enabled=False
        )

    async def test_settings_survive_restart(
        self, pet_service: PetService, profile_store: ProfileStore
    ) -> None:
        fast = TimeSettings(time_speed=3.0, offline_calculation_enabled=True)
        await pet_service.update_time_settings(fast)

        restarted = PetService(profile_store)
        assert await restarted.get_time_settings() == fast
