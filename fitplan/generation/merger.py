"""Chunk merging.

Folds one step's chunk into a copy of the accumulator after checking it has
exactly the structure the step table declares. The input accumulator is never
mutated, so a rejected merge leaves the job's state untouched.
"""

from collections import Counter
from typing import assert_never

from fitplan.generation.errors import DataIntegrityError
from fitplan.generation.schemas import Accumulator, Chunk, NutritionChunk, WorkoutChunk
from fitplan.generation.steps import NutritionStep, StepSpec, WorkoutStep


def _duplicates(numbers: list[int]) -> list[int]:
    return sorted(n for n, count in Counter(numbers).items() if count > 1)


def validate_workout_chunk(accumulator: Accumulator, step: WorkoutStep, chunk: WorkoutChunk) -> None:
    """Validate a workout chunk against its step and the days already merged.

    Checks:
    - Accumulator holds exactly the days before this step's range
    - Day count matches the step's range
    - No duplicate day numbers
    - Day numbers are exactly the step's contiguous range, in order

    Raises:
        DataIntegrityError: If any check fails
    """
    errors: list[str] = []

    already_merged = [day.day for day in accumulator.workout_days]
    expected_prefix = list(range(1, step.first_day))
    if already_merged != expected_prefix:
        errors.append(
            f"accumulator holds days {already_merged or '[]'} but step {step.index} expects days 1..{step.first_day - 1} before it"
        )

    returned = [day.day for day in chunk.days]
    expected = step.expected_days
    if len(returned) != len(expected):
        errors.append(f"step {step.index} returned {len(returned)} days, expected {len(expected)}")

    duplicates = _duplicates(returned)
    if duplicates:
        errors.append(f"step {step.index} returned duplicate days {duplicates}")

    if returned != expected:
        errors.append(f"step {step.index} returned days {returned}, expected {expected}")

    if errors:
        code = "DUPLICATE_DAYS" if duplicates else "DAY_RANGE_MISMATCH"
        raise DataIntegrityError(code, errors)


def validate_nutrition_chunk(step: NutritionStep, chunk: NutritionChunk) -> None:
    """Validate the nutrition chunk's day count and numbering.

    Raises:
        DataIntegrityError: If any check fails
    """
    errors: list[str] = []
    returned = [day.day for day in chunk.nutrition_days]

    if len(returned) != step.day_count:
        errors.append(f"nutrition step returned {len(returned)} days, expected {step.day_count}")

    duplicates = _duplicates(returned)
    if duplicates:
        errors.append(f"nutrition step returned duplicate days {duplicates}")

    if returned != step.expected_days:
        errors.append(f"nutrition step returned days {returned}, expected {step.expected_days}")

    if errors:
        code = "DUPLICATE_DAYS" if duplicates else "NUTRITION_COUNT_MISMATCH"
        raise DataIntegrityError(code, errors)


def merge_chunk(accumulator: Accumulator, step: StepSpec, chunk: Chunk) -> Accumulator:
    """Merge a step's chunk into the accumulator.

    Args:
        accumulator: Current accumulator (not modified)
        step: Step the chunk was generated for
        chunk: Parsed chunk

    Returns:
        New accumulator including the chunk

    Raises:
        DataIntegrityError: If the chunk does not match the step
    """
    if isinstance(step, WorkoutStep):
        if not isinstance(chunk, WorkoutChunk):
            raise DataIntegrityError("CHUNK_KIND_MISMATCH", [f"step {step.index} expects a workout chunk, got {type(chunk).__name__}"])
        validate_workout_chunk(accumulator, step, chunk)
        merged = accumulator.model_copy(deep=True)
        merged.workout_days.extend(day.model_copy(deep=True) for day in chunk.days)
        return merged

    if isinstance(step, NutritionStep):
        if not isinstance(chunk, NutritionChunk):
            raise DataIntegrityError("CHUNK_KIND_MISMATCH", [f"step {step.index} expects a nutrition chunk, got {type(chunk).__name__}"])
        validate_nutrition_chunk(step, chunk)
        merged = accumulator.model_copy(deep=True)
        merged.nutrition_days = [day.model_copy(deep=True) for day in chunk.nutrition_days]
        merged.summary = chunk.plan_summary
        merged.hydration = chunk.hydration.model_copy()
        return merged

    assert_never(step)
