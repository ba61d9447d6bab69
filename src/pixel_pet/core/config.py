"""Application configuration."""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

MIN_TIME_SPEED = 0.5
MAX_TIME_SPEED = 3.0
MIN_OFFLINE_MINUTES = 30  # Shorter absences are forgiven


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    app_name: str = "Pixel Pet"
    debug: bool = False

    # Local profile storage
    database_url: str = "sqlite+aiosqlite:///./pixel_pet.db"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Offline reconciliation
    reconcile_interval_minutes: int = 60
    default_time_speed: float = Field(default=1.0, ge=MIN_TIME_SPEED, le=MAX_TIME_SPEED)
    default_offline_calculation: bool = True

    # History retention
    interaction_history_limit: int = Field(default=100, ge=1)
    game_history_limit: int = Field(default=50, ge=1)

    @field_validator("reconcile_interval_minutes")
    @classmethod
    def _interval_above_offline_threshold(cls, value: int) -> int:
        # A shorter timer would keep forgiving the time between its own runs
        if value <= MIN_OFFLINE_MINUTES:
            raise ValueError(
                f"reconcile_interval_minutes must be greater than {MIN_OFFLINE_MINUTES}"
            )
        return value

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


class TimeSettings(BaseModel):
    """User-adjustable knobs read at reconciliation time."""

    time_speed: float = Field(default=1.0, ge=MIN_TIME_SPEED, le=MAX_TIME_SPEED)
    offline_calculation_enabled: bool = True

    @classmethod
    def from_settings(cls, app_settings: "Settings") -> "TimeSettings":
        return cls(
            time_speed=app_settings.default_time_speed,
            offline_calculation_enabled=app_settings.default_offline_calculation,
        )


settings = Settings()
