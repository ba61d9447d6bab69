"""API routes for the local pet."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pixel_pet.core.config import TimeSettings
from pixel_pet.core.database import get_session
from pixel_pet.models.pet import (
    AnimationState,
    GameRecord,
    GameType,
    HealthState,
    InteractionLogEntry,
    InteractionType,
    PetRecord,
    PetStats,
    Snapshot,
    Species,
)
from pixel_pet.services.offline import format_offline_time
from pixel_pet.services.pet_logic import derive_animation
from pixel_pet.services.pet_service import (
    CooldownActiveError,
    NoPetError,
    PetAlreadyExistsError,
    PetIsDeadError,
    PetIsFullError,
    PetNotDeadError,
    PetService,
    get_pet_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["pet"])

DbSession = Annotated[AsyncSession, Depends(get_session)]
Pets = Annotated[PetService, Depends(get_pet_service)]


class HatchRequest(BaseModel):
    """Request model for hatching a pet."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    species: Species | None = None


class GameResultRequest(BaseModel):
    """Request model for a finished minigame."""

    game_type: GameType
    score: int = Field(..., ge=0)


class PetResponse(BaseModel):
    """Response model for the current pet."""

    pet: PetRecord
    stats: PetStats
    health: HealthState
    animation: AnimationState


class InteractionResponse(BaseModel):
    """Response model for an interaction."""

    message: str
    interaction: InteractionLogEntry
    pet: PetResponse


class GameResponse(BaseModel):
    """Response model for a recorded game."""

    message: str
    record: GameRecord
    pet: PetResponse


class OfflineSummaryResponse(BaseModel):
    """Response model for an offline reconciliation."""

    offline_minutes: int
    offline_time: str
    show_offline_summary: bool
    changes: list[str]
    evolved: bool
    pet: PetResponse


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str


def _pet_response(snapshot: Snapshot) -> PetResponse:
    return PetResponse(
        pet=snapshot.pet,
        stats=snapshot.stats,
        health=snapshot.health,
        animation=derive_animation(snapshot.stats, snapshot.health),
    )


def _no_pet() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="No pet has hatched yet",
    )


async def _require_snapshot(service: PetService) -> Snapshot:
    snapshot = await service.get_snapshot()
    if snapshot is None:
        raise _no_pet()
    return snapshot


@router.get("/health", response_model=HealthResponse)
async def health_check(session: DbSession) -> HealthResponse:
    """Health check endpoint."""
    from pixel_pet import __version__

    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception:
        logger.exception("Database health check failed")
        db_status = "disconnected"

    return HealthResponse(status="healthy", version=__version__, database=db_status)


@router.post("/pet", response_model=PetResponse, status_code=status.HTTP_201_CREATED)
async def hatch_pet(request: HatchRequest, service: Pets) -> PetResponse:
    """Hatch a new pet."""
    try:
        snapshot = await service.hatch(name=request.name, species=request.species)
    except PetAlreadyExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _pet_response(snapshot)


@router.get("/pet", response_model=PetResponse)
async def get_pet(service: Pets) -> PetResponse:
    """Get the current pet's status."""
    return _pet_response(await _require_snapshot(service))


@router.delete("/pet", status_code=status.HTTP_204_NO_CONTENT)
async def reset_pet(service: Pets) -> None:
    """Release the pet so a new egg can hatch."""
    await _require_snapshot(service)
    await service.reset()


@router.post("/pet/reconcile", response_model=OfflineSummaryResponse)
async def reconcile_pet(service: Pets) -> OfflineSummaryResponse:
    """Apply the effects of the time the app was closed."""
    outcome = await service.reconcile()
    if outcome is None:
        raise _no_pet()
    snapshot, result = outcome
    return OfflineSummaryResponse(
        offline_minutes=result.offline_minutes,
        offline_time=format_offline_time(result.offline_minutes),
        show_offline_summary=result.show_offline_summary,
        changes=result.change_log,
        evolved=result.updated_pet is not None,
        pet=_pet_response(snapshot),
    )


@router.post("/pet/interactions/{interaction_type}", response_model=InteractionResponse)
async def interact(interaction_type: InteractionType, service: Pets) -> InteractionResponse:
    """Care for the pet."""
    try:
        snapshot, entry = await service.interact(interaction_type)
    except NoPetError as e:
        raise _no_pet() from e
    except CooldownActiveError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={"Retry-After": str(e.remaining_seconds)},
        ) from e
    except (PetIsDeadError, PetIsFullError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return InteractionResponse(
        message=f"{snapshot.pet.name} enjoyed the {interaction_type.value}!",
        interaction=entry,
        pet=_pet_response(snapshot),
    )


@router.get("/pet/interactions", response_model=list[InteractionLogEntry])
async def list_interactions(
    service: Pets,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[InteractionLogEntry]:
    """List the most recent interactions, newest first."""
    snapshot = await _require_snapshot(service)
    return snapshot.interaction_history[:limit]


@router.post("/pet/games", response_model=GameResponse)
async def record_game(request: GameResultRequest, service: Pets) -> GameResponse:
    """Record a finished minigame and grant its reward."""
    try:
        snapshot, record = await service.play_game(request.game_type, request.score)
    except NoPetError as e:
        raise _no_pet() from e
    except PetIsDeadError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return GameResponse(
        message=f"{snapshot.pet.name} earned {record.reward['experience']} experience!",
        record=record,
        pet=_pet_response(snapshot),
    )


@router.get("/pet/games", response_model=list[GameRecord])
async def list_games(
    service: Pets,
    limit: Annotated[int, Query(ge=1, le=50)] = 20,
) -> list[GameRecord]:
    """List the most recent game results, newest first."""
    snapshot = await _require_snapshot(service)
    return snapshot.game_records[:limit]


@router.post("/pet/revive", response_model=PetResponse)
async def revive_pet(service: Pets) -> PetResponse:
    """Bring a dead pet back to life."""
    try:
        snapshot = await service.revive()
    except NoPetError as e:
        raise _no_pet() from e
    except PetNotDeadError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _pet_response(snapshot)


@router.get("/settings", response_model=TimeSettings)
async def get_settings(service: Pets) -> TimeSettings:
    """Get the time speed and offline calculation settings."""
    return await service.get_time_settings()


@router.put("/settings", response_model=TimeSettings)
async def update_settings(time_settings: TimeSettings, service: Pets) -> TimeSettings:
    """Change the time speed or toggle offline calculation."""
    return await service.update_time_settings(time_settings)
