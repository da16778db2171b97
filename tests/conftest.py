"""Root conftest for all tests.

Provides an isolated in-memory database per test, a sample profile and
context, chunk payload builders and a scripted fake generation client.
"""

import json
import re
from collections.abc import Callable, Iterable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fitplan.db.models import Base
from fitplan.generation.client import GenerationInstruction, GenerationResponse
from fitplan.generation.schemas import Accumulator, WorkoutDay
from fitplan.generation.steps import build_step_table
from fitplan.profile.context import build_plan_context
from fitplan.profile.models import ActivityLevel, Goal, Sex, UserProfile

_WORKOUT_RANGE_RE = re.compile(r"write workout days (\d+) to (\d+)")
_NUTRITION_COUNT_RE = re.compile(r"write a (\d+)-day meal plan")


def make_workout_day(day: int) -> dict:
    return {
        "day": day,
        "is_rest_day": day % 7 == 0,
        "workout_name": f"Full body circuit {day}",
        "duration_minutes": 45,
        "estimated_calories_burnt": 320,
        "focus": "strength",
        "warmup": "Joint mobility",
        "warmup_exercises": [{"name": "Jumping jacks", "duration_seconds": 60, "description": "Easy pace"}],
        "cooldown": "Static stretching",
        "cooldown_exercises": [{"name": "Hamstring stretch", "duration_seconds": 45}],
        "exercises": [
            {"name": "Goblet squat", "sequence_order": 1, "sets": 3, "reps_or_time": "12", "equipment_used": "dumbbell"},
            {"name": "Plank", "sequence_order": 2, "sets": 3, "reps_or_time": "40s", "equipment_used": "bodyweight"},
        ],
    }


def make_nutrition_day(day: int) -> dict:
    return {
        "day": day,
        "total_daily_calories": 2350,
        "total_daily_macros": "P 35% / C 35% / F 30%",
        "meals": [
            {
                "meal_time": "Breakfast",
                "description": "Oats with yoghurt and berries",
                "main_ingredients": "oats, greek yoghurt, berries",
                "calories": 450,
                "protein_g": 30,
                "carbs_g": 55,
                "fat_g": 10,
            },
            {
                "meal_time": "Lunch",
                "description": "Grilled chicken with rice",
                "main_ingredients": "chicken breast, rice, broccoli",
                "recipe": "Grill the chicken, steam the broccoli, serve over rice.",
                "calories": 650,
                "protein_g": 50,
                "carbs_g": 70,
                "fat_g": 15,
                "ingredients": [
                    {"name": "Chicken breast", "quantity": "150g", "calories": 250, "protein_g": 45, "carbs_g": 0, "fat_g": 5},
                ],
            },
        ],
    }


def workout_payload(days: Iterable[int]) -> dict:
    return {"days": [make_workout_day(day) for day in days]}


def nutrition_payload(days: Iterable[int]) -> dict:
    return {
        "plan_summary": "Three strength sessions a week with a moderate calorie deficit.",
        "nutrition_days": [make_nutrition_day(day) for day in days],
        "hydration": {"water_target_ml": 2800, "notification_schedule": "Every 2 hours from 08:00 to 20:00"},
    }


def valid_content_for(instruction: GenerationInstruction) -> str:
    """Well-formed chunk JSON for whatever step the instruction asks for."""
    workout = _WORKOUT_RANGE_RE.search(instruction.user_prompt)
    if workout:
        first, last = int(workout.group(1)), int(workout.group(2))
        return json.dumps(workout_payload(range(first, last + 1)))
    nutrition = _NUTRITION_COUNT_RE.search(instruction.user_prompt)
    if nutrition:
        return json.dumps(nutrition_payload(range(1, int(nutrition.group(1)) + 1)))
    raise AssertionError(f"Unrecognised instruction: {instruction.schema_name}")


Outcome = GenerationResponse | Exception | Callable[[GenerationInstruction, int], GenerationResponse]


class FakeGenerationClient:
    """Scripted TextGenerationClient.

    Each call consumes the next scripted outcome: a response is returned, an
    exception is raised, a callable is called. Once the script is empty every
    call returns a valid chunk for the requested step.
    """

    def __init__(self, script: Iterable[Outcome] = ()):
        self.script: list[Outcome] = list(script)
        self.calls: list[tuple[str, int]] = []

    @property
    def budgets(self) -> list[int]:
        return [budget for _, budget in self.calls]

    def complete(self, instruction: GenerationInstruction, budget: int) -> GenerationResponse:
        self.calls.append((instruction.schema_name, budget))
        if self.script:
            outcome = self.script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            if callable(outcome):
                return outcome(instruction, budget)
            return outcome
        return GenerationResponse(content=valid_content_for(instruction))


@pytest.fixture
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(
        sex=Sex.MALE,
        age=30,
        weight_kg=80,
        height_cm=180,
        goal=Goal.LOSS,
        activity_level=ActivityLevel.MODERATE,
        equipment=["Halteres de 2kg", "Banco Adidas"],
        impediments="mild lower back pain",
        time_per_day_min=45,
    )


@pytest.fixture
def plan_context(profile):
    return build_plan_context(profile)


@pytest.fixture
def step_table():
    return build_step_table(workout_days=15, days_per_step=3, nutrition_days=7)


@pytest.fixture
def make_client() -> Callable[..., FakeGenerationClient]:
    def _make(*script: Outcome) -> FakeGenerationClient:
        return FakeGenerationClient(script)

    return _make


@pytest.fixture
def workout_chunk_payload() -> Callable[[Iterable[int]], dict]:
    return workout_payload


@pytest.fixture
def nutrition_chunk_payload() -> Callable[[Iterable[int]], dict]:
    return nutrition_payload


@pytest.fixture
def accumulator_with() -> Callable[[Iterable[int]], Accumulator]:
    """Accumulator holding the given workout days and no nutrition section."""

    def _make(days: Iterable[int]) -> Accumulator:
        return Accumulator(workout_days=[WorkoutDay.model_validate(make_workout_day(day)) for day in days])

    return _make


@pytest.fixture
def valid_content() -> Callable[[GenerationInstruction], str]:
    return valid_content_for
