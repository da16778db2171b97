import pytest

from fitplan.generation.errors import DataIntegrityError, StepOutOfRangeError
from fitplan.generation.steps import NutritionStep, StepKind, WorkoutStep, build_step_table


def test_default_shape_has_five_workout_blocks_and_nutrition(step_table):
    assert step_table.total_steps == 6
    assert step_table.total_workout_days == 15
    assert step_table.nutrition_day_count == 7

    ranges = [(step.first_day, step.last_day) for step in step_table.steps if isinstance(step, WorkoutStep)]
    assert ranges == [(1, 3), (4, 6), (7, 9), (10, 12), (13, 15)]

    last = step_table.get(6)
    assert isinstance(last, NutritionStep)
    assert last.kind == StepKind.NUTRITION
    assert last.expected_days == [1, 2, 3, 4, 5, 6, 7]


def test_get_is_one_based(step_table):
    first = step_table.get(1)
    assert isinstance(first, WorkoutStep)
    assert first.index == 1
    assert first.expected_days == [1, 2, 3]
    assert first.kind == StepKind.WORKOUT


@pytest.mark.parametrize("index", [0, -1, 7])
def test_get_out_of_range_fails_loudly(step_table, index):
    with pytest.raises(StepOutOfRangeError) as exc_info:
        step_table.get(index)

    assert isinstance(exc_info.value, DataIntegrityError)
    assert exc_info.value.code == "STEP_OUT_OF_RANGE"


def test_step_indexes_are_contiguous(step_table):
    assert [step.index for step in step_table.steps] == list(range(1, 7))


def test_uneven_workout_days_rejected():
    with pytest.raises(ValueError, match="do not divide"):
        build_step_table(workout_days=14, days_per_step=3, nutrition_days=7)


def test_non_positive_counts_rejected():
    with pytest.raises(ValueError):
        build_step_table(workout_days=15, days_per_step=3, nutrition_days=0)


def test_alternate_shape():
    table = build_step_table(workout_days=8, days_per_step=4, nutrition_days=3)

    assert len(table) == 3
    assert table.get(2).expected_days == [5, 6, 7, 8]
    assert table.get(3).expected_days == [1, 2, 3]
