"""Generation step table.

The plan is generated in a fixed sequence of steps. Workout steps each cover a
contiguous block of days; the final step writes the nutrition section. The
table is the single source of day-range logic for the executor, the merger
and the assembler.

Default deployment (15 workout days, 3 per step, 7 nutrition days):

    step 1  workout   days 1-3
    step 2  workout   days 4-6
    step 3  workout   days 7-9
    step 4  workout   days 10-12
    step 5  workout   days 13-15
    step 6  nutrition 7 days
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from typing import ClassVar

from fitplan.generation.errors import StepOutOfRangeError


class StepKind(StrEnum):
    WORKOUT = "workout-chunk"
    NUTRITION = "nutrition-chunk"


@dataclass(frozen=True)
class WorkoutStep:
    """Step producing workout days first_day..last_day (inclusive, 1-based)."""

    kind: ClassVar[StepKind] = StepKind.WORKOUT

    index: int
    first_day: int
    last_day: int
    total_workout_days: int

    @property
    def expected_days(self) -> list[int]:
        return list(range(self.first_day, self.last_day + 1))

    @property
    def day_count(self) -> int:
        return self.last_day - self.first_day + 1


@dataclass(frozen=True)
class NutritionStep:
    """Step producing the full nutrition section."""

    kind: ClassVar[StepKind] = StepKind.NUTRITION

    index: int
    day_count: int

    @property
    def expected_days(self) -> list[int]:
        return list(range(1, self.day_count + 1))


StepSpec = WorkoutStep | NutritionStep


@dataclass(frozen=True)
class StepTable:
    steps: tuple[StepSpec, ...]

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def total_workout_days(self) -> int:
        return sum(step.day_count for step in self.steps if isinstance(step, WorkoutStep))

    @property
    def nutrition_day_count(self) -> int:
        return sum(step.day_count for step in self.steps if isinstance(step, NutritionStep))

    def get(self, index: int) -> StepSpec:
        """Look up a step by its 1-based index.

        Raises:
            StepOutOfRangeError: If index is outside 1..total_steps
        """
        if index < 1 or index > len(self.steps):
            raise StepOutOfRangeError(index, len(self.steps))
        return self.steps[index - 1]


def build_step_table(workout_days: int, days_per_step: int, nutrition_days: int) -> StepTable:
    """Build the step table for a plan shape.

    Args:
        workout_days: Total workout days in the plan
        days_per_step: Workout days generated per step
        nutrition_days: Nutrition days generated by the final step

    Raises:
        ValueError: If the counts are not positive or workout days do not
            divide evenly into steps
    """
    if workout_days <= 0 or days_per_step <= 0 or nutrition_days <= 0:
        raise ValueError("Step table day counts must be positive")
    if workout_days % days_per_step != 0:
        raise ValueError(f"{workout_days} workout days do not divide into chunks of {days_per_step}")

    steps: list[StepSpec] = []
    for offset in range(workout_days // days_per_step):
        first_day = offset * days_per_step + 1
        steps.append(
            WorkoutStep(
                index=offset + 1,
                first_day=first_day,
                last_day=first_day + days_per_step - 1,
                total_workout_days=workout_days,
            )
        )
    steps.append(NutritionStep(index=len(steps) + 1, day_count=nutrition_days))
    return StepTable(steps=tuple(steps))


@lru_cache(maxsize=1)
def default_step_table() -> StepTable:
    """Step table for this deployment, built from settings once per process."""
    from fitplan.config.settings import settings

    return build_step_table(
        workout_days=settings.plan_workout_days,
        days_per_step=settings.plan_days_per_workout_step,
        nutrition_days=settings.plan_nutrition_days,
    )
