"""Test fixtures and configuration."""

import random
from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pixel_pet import __version__
from pixel_pet.api.routes import router
from pixel_pet.core.clock import MS_PER_HOUR, ManualClock
from pixel_pet.core.config import Settings
from pixel_pet.core.database import get_session, init_database
from pixel_pet.models.pet import LifeStage, PetRecord, PetStats, Rarity, Species
from pixel_pet.services.pet_service import PetService, get_pet_service
from pixel_pet.services.storage import ProfileStore

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 2025-01-10T12:00:00Z
BASE_TIME = 1_736_510_400_000


@pytest.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Create test database tables and provide a session factory."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    await init_database(engine)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def test_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Provide a session on the test database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def profile_store(session_factory: async_sessionmaker[AsyncSession]) -> ProfileStore:
    return ProfileStore(session_factory)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(BASE_TIME)


@pytest.fixture
def app_settings() -> Settings:
    return Settings(interaction_history_limit=5, game_history_limit=3)


@pytest.fixture
def pet_service(
    profile_store: ProfileStore, clock: ManualClock, app_settings: Settings
) -> PetService:
    return PetService(profile_store, clock=clock, app_settings=app_settings, rng=random.Random(7))


def create_api_test_app(
    session_factory: async_sessionmaker[AsyncSession], service: PetService
) -> FastAPI:
    """Create a test FastAPI app for API testing (no scheduler)."""
    test_app = FastAPI(title="Pixel Pet Test")
    test_app.include_router(router)

    async def get_test_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    test_app.dependency_overrides[get_session] = get_test_session
    test_app.dependency_overrides[get_pet_service] = lambda: service

    @test_app.get("/")
    async def root() -> dict[str, str]:
        return {"name": "Pixel Pet", "version": __version__, "docs": "/docs"}

    return test_app


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession], pet_service: PetService
) -> AsyncIterator[AsyncClient]:
    """Create async test client for API testing with test database."""
    test_app = create_api_test_app(session_factory, pet_service)

    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


# Mock data fixtures for testing


@pytest.fixture
def baby_pet() -> PetRecord:
    """A baby pet born five real hours before BASE_TIME."""
    return PetRecord(
        id="pet_test",
        name="Mimi",
        species=Species.CAT,
        rarity=Rarity.COMMON,
        birth_time=BASE_TIME - 5 * MS_PER_HOUR,
        stage=LifeStage.BABY,
    )


@pytest.fixture
def fresh_stats() -> PetStats:
    """Starting stats of a newly hatched pet."""
    return PetStats(
        pet_id="pet_test",
        hunger=80,
        happiness=90,
        cleanliness=100,
        health=100,
        energy=100,
        experience=0,
    )
