import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Output-size budgets (completion tokens) tried in ascending order for every step
DEFAULT_GENERATION_BUDGETS: list[int] = [8000, 12000, 16000, 24000, 32000]


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    ⚠️ SQLite is for local development only. Set DATABASE_URL to a PostgreSQL
    connection string for anything shared.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "fitplan.db"
    db_url = f"sqlite:///{db_path.resolve()}"
    logger.warning(
        f"⚠️ Using SQLite database (LOCAL DEV ONLY): {db_url}\n"
        "⚠️ Set DATABASE_URL environment variable to use PostgreSQL."
    )
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    azure_openai_endpoint: str = Field(default="", validation_alias="AZURE_OPENAI_ENDPOINT")
    azure_openai_api_key: str = Field(default="", validation_alias="AZURE_OPENAI_API_KEY")
    azure_openai_deployment: str = Field(default="", validation_alias="AZURE_OPENAI_DEPLOYMENT")
    azure_openai_api_version: str = Field(default="2024-08-01-preview", validation_alias="AZURE_OPENAI_API_VERSION")
    plan_generation_model: str = Field(
        default="gpt-4o-mini",
        validation_alias="PLAN_GENERATION_MODEL",
        description="Model name for the OpenAI API (ignored when an Azure deployment is configured)",
    )

    generation_budgets: list[int] = Field(
        default_factory=lambda: list(DEFAULT_GENERATION_BUDGETS),
        validation_alias="GENERATION_BUDGETS",
        description="Ascending completion-token budgets for escalation (JSON list)",
    )

    plan_workout_days: int = Field(default=15, validation_alias="PLAN_WORKOUT_DAYS")
    plan_days_per_workout_step: int = Field(default=3, validation_alias="PLAN_DAYS_PER_WORKOUT_STEP")
    plan_nutrition_days: int = Field(default=7, validation_alias="PLAN_NUTRITION_DAYS")
    plan_duration_days: int = Field(default=30, validation_alias="PLAN_DURATION_DAYS")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("generation_budgets")
    @classmethod
    def validate_generation_budgets(cls, value: list[int]) -> list[int]:
        """Budgets must be positive and strictly ascending."""
        if not value:
            raise ValueError("GENERATION_BUDGETS must contain at least one budget")
        if any(budget <= 0 for budget in value):
            raise ValueError(f"GENERATION_BUDGETS must be positive, got {value}")
        if any(later <= earlier for earlier, later in zip(value, value[1:], strict=False)):
            raise ValueError(f"GENERATION_BUDGETS must be strictly ascending, got {value}")
        return value

    @model_validator(mode="after")
    def validate_plan_shape(self) -> "Settings":
        if self.plan_workout_days <= 0 or self.plan_days_per_workout_step <= 0 or self.plan_nutrition_days <= 0:
            raise ValueError("Plan day counts must be positive")
        if self.plan_workout_days % self.plan_days_per_workout_step != 0:
            raise ValueError(
                f"PLAN_WORKOUT_DAYS ({self.plan_workout_days}) must divide evenly into "
                f"chunks of PLAN_DAYS_PER_WORKOUT_STEP ({self.plan_days_per_workout_step})"
            )
        if not self.openai_api_key and not self.azure_openai_endpoint:
            logger.warning(
                "⚠️ Neither OPENAI_API_KEY nor AZURE_OPENAI_ENDPOINT is set. "
                "Plan generation will fail until a text generation backend is configured."
            )
        return self


settings = Settings()
