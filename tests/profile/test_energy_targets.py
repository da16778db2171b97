import pytest

from fitplan.profile.energy import (
    MacroSplit,
    assess_weight_goal,
    calculate_bmr,
    compute_energy_targets,
    macro_split_for,
)
from fitplan.profile.models import ActivityLevel, Goal, Sex, UserProfile


def _profile(**overrides) -> UserProfile:
    values = {
        "sex": Sex.MALE,
        "age": 30,
        "weight_kg": 80,
        "height_cm": 180,
        "goal": Goal.LOSS,
        "activity_level": ActivityLevel.MODERATE,
    }
    values.update(overrides)
    return UserProfile(**values)


def test_bmr_male():
    assert calculate_bmr(_profile()) == pytest.approx(1780.0)


def test_bmr_female():
    profile = _profile(sex=Sex.FEMALE, age=25, weight_kg=60, height_cm=165)

    assert calculate_bmr(profile) == pytest.approx(1345.25)


def test_loss_targets():
    targets = compute_energy_targets(_profile())

    assert targets.bmr_kcal == 1780
    assert targets.tdee_kcal == 2759
    assert targets.target_calories == 2359
    assert targets.macros == MacroSplit(protein_pct=35, carbs_pct=35, fat_pct=30)
    assert targets.water_target_ml == 2800


def test_muscle_targets_add_surplus():
    profile = _profile(sex=Sex.FEMALE, age=25, weight_kg=60, height_cm=165, goal=Goal.MUSCLE, activity_level=ActivityLevel.SEDENTARY)

    targets = compute_energy_targets(profile)

    assert targets.tdee_kcal == 1614
    assert targets.target_calories == 1914
    assert targets.macros.protein_pct == 40
    assert targets.water_target_ml == 2100


def test_maintenance_goals_keep_tdee():
    targets = compute_energy_targets(_profile(goal=Goal.ENDURANCE, activity_level=ActivityLevel.VERY))

    assert targets.tdee_kcal == round(1780 * 1.725)
    assert targets.target_calories == targets.tdee_kcal
    assert targets.macros == macro_split_for(Goal.GAIN)


@pytest.mark.parametrize("goal", list(Goal))
def test_macro_splits_sum_to_100(goal):
    split = macro_split_for(goal)

    assert split.protein_pct + split.carbs_pct + split.fat_pct == 100


@pytest.mark.parametrize(
    "current, target, weeks, goal, status",
    [
        (80, 74, 8, Goal.LOSS, "possible"),
        (80, 72, 8, Goal.LOSS, "challenging"),
        (80, 60, 8, Goal.LOSS, "not_possible"),
        (60, 63, 8, Goal.GAIN, "possible"),
        (60, 64, 8, Goal.MUSCLE, "challenging"),
        (60, 70, 8, Goal.GAIN, "not_possible"),
    ],
)
def test_weight_goal_assessment(current, target, weeks, goal, status):
    assert assess_weight_goal(current, target, weeks, goal).status == status


def test_weight_goal_limits_follow_declared_goal():
    # 0.5 kg/week is fine for a loss goal but too fast for a gain goal
    assert assess_weight_goal(80, 84, 8, Goal.LOSS).status == "possible"
    assert assess_weight_goal(80, 76, 8, Goal.GAIN).status == "challenging"


def test_weight_goal_weekly_change():
    assert assess_weight_goal(80, 72, 8, Goal.LOSS).weekly_change_kg == pytest.approx(1.0)


def test_weight_goal_requires_positive_weeks():
    with pytest.raises(ValueError):
        assess_weight_goal(80, 72, 0, Goal.LOSS)
