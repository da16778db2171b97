"""Plan document schemas.

- WorkoutChunk / NutritionChunk: structured output of one generation step
- Accumulator: partial plan document carried on the job between steps
- FinalizedPlan: immutable plan produced once every step has been merged

Day, meal and hydration models are frozen; only the chunk and accumulator
containers are mutable lists.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PlanModel(BaseModel):
    """Plan document part. Frozen, so a finalized plan cannot be edited in place."""

    model_config = ConfigDict(frozen=True)


class GuidedExercise(PlanModel):
    """Warm-up or cool-down movement."""

    name: str
    duration_seconds: int = Field(ge=0)
    description: str = ""


class Exercise(PlanModel):
    name: str
    sequence_order: int
    sets: int = Field(ge=0)
    reps_or_time: str
    equipment_used: str


class WorkoutDay(PlanModel):
    day: int = Field(ge=1)
    is_rest_day: bool
    workout_name: str
    duration_minutes: int = Field(ge=0)
    estimated_calories_burnt: int = Field(ge=0)
    focus: str
    warmup: str = ""
    warmup_exercises: tuple[GuidedExercise, ...] = ()
    cooldown: str = ""
    cooldown_exercises: tuple[GuidedExercise, ...] = ()
    exercises: tuple[Exercise, ...] = ()


class Ingredient(PlanModel):
    name: str
    quantity: str
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float


class Meal(PlanModel):
    meal_time: str
    description: str
    main_ingredients: str
    recipe: str = ""
    calories: int
    protein_g: float
    carbs_g: float
    fat_g: float
    ingredients: tuple[Ingredient, ...] = ()


class NutritionDay(PlanModel):
    day: int = Field(ge=1)
    total_daily_calories: int
    total_daily_macros: str
    meals: tuple[Meal, ...]


class HydrationTarget(PlanModel):
    water_target_ml: int = Field(gt=0)
    notification_schedule: str


class WorkoutChunk(BaseModel):
    """Output of a workout step: a contiguous block of workout days."""

    days: list[WorkoutDay]


class NutritionChunk(BaseModel):
    """Output of the nutrition step: the whole nutrition section."""

    plan_summary: str
    nutrition_days: list[NutritionDay]
    hydration: HydrationTarget


Chunk = WorkoutChunk | NutritionChunk


class Accumulator(BaseModel):
    """In-progress plan document.

    workout_days is append-only across workout steps; the nutrition fields
    are written wholesale by the nutrition step.
    """

    workout_days: list[WorkoutDay] = Field(default_factory=list)
    nutrition_days: list[NutritionDay] = Field(default_factory=list)
    summary: str | None = None
    hydration: HydrationTarget | None = None


class FinalizedPlan(BaseModel):
    """Complete plan. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    job_id: str
    workout_days: tuple[WorkoutDay, ...]
    nutrition_days: tuple[NutritionDay, ...]
    summary: str
    hydration: HydrationTarget
    duration_days: int
    start_date: datetime
    end_date: datetime
    created_at: datetime

    def plan_document(self) -> dict:
        """JSON document stored alongside the plan row."""
        return self.model_dump(
            mode="json",
            include={"workout_days", "nutrition_days", "summary", "hydration"},
        )
