"""Runtime settings, read from ``IRL_*`` environment variables or a ``.env`` file."""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from irl_maturity.scoring import PROGRESSION_THRESHOLD


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="IRL_",
        env_file=".env",
        extra="ignore",
    )

    db_path: str = Field(
        default=str(Path.home() / ".irl_maturity" / "assessments.db"),
        description="SQLite database holding the question bank and sessions",
    )
    # cross_module counts a phase as done only when every module's questions
    # for that phase are answered; per_module scopes the count to one module.
    unlock_strategy: Literal["cross_module", "per_module"] = Field(default="cross_module")
    progression_threshold: float = Field(
        default=PROGRESSION_THRESHOLD, description="Phase score shown as able to progress (M3)"
    )
    quick_questions_per_category: int = Field(default=3, ge=1)
    require_quick_before_deep: bool = Field(default=True)
    auto_advance: bool = Field(
        default=True, description="Move to the next open axis once the current one is answered"
    )
    log_level: str = Field(default="WARNING")


@lru_cache
def get_settings() -> Settings:
    return Settings()
