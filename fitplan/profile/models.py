"""User profile schema consumed by plan generation."""

from enum import StrEnum

from pydantic import BaseModel, Field


class Sex(StrEnum):
    MALE = "male"
    FEMALE = "female"


class Goal(StrEnum):
    LOSS = "loss"
    MUSCLE = "muscle"
    GAIN = "gain"
    ENDURANCE = "endurance"


class ActivityLevel(StrEnum):
    SEDENTARY = "sedentary"
    LIGHT = "light"
    MODERATE = "moderate"
    VERY = "very"


class Difficulty(StrEnum):
    VERY_EASY = "very_easy"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    VERY_HARD = "very_hard"


class UserProfile(BaseModel):
    """Profile collected during onboarding.

    Weight is in kilograms, height in centimetres.
    """

    sex: Sex
    age: int = Field(gt=0, lt=120)
    weight_kg: float = Field(gt=0)
    height_cm: float = Field(gt=0)
    goal: Goal
    activity_level: ActivityLevel = ActivityLevel.MODERATE
    equipment: list[str] = Field(default_factory=list)
    impediments: str | None = None
    somatotype: str | None = None
    current_body_comp: str | None = None
    target_body_comp: str | None = None
    time_per_day_min: int = Field(default=45, gt=0)
    difficulty: Difficulty = Difficulty.MEDIUM
    language: str = "pt"
