"""Energy and nutrition targets derived from a user profile.

Calculations:
- BMR: Mifflin-St Jeor equation
- TDEE: BMR x activity factor (ACSM factors)
- Target calories: -400 kcal for loss, +300 kcal for muscle
- Macro split: percentage of calories per macronutrient
- Water: 35 ml per kg of body weight
"""

from dataclasses import dataclass
from typing import Literal

from fitplan.profile.models import ActivityLevel, Goal, Sex, UserProfile

ACTIVITY_FACTORS: dict[ActivityLevel, float] = {
    ActivityLevel.SEDENTARY: 1.2,
    ActivityLevel.LIGHT: 1.375,
    ActivityLevel.MODERATE: 1.55,
    ActivityLevel.VERY: 1.725,
}

LOSS_DEFICIT_KCAL = 400
MUSCLE_SURPLUS_KCAL = 300
WATER_ML_PER_KG = 35

WeightGoalStatus = Literal["possible", "challenging", "not_possible"]


@dataclass(frozen=True)
class MacroSplit:
    """Macro distribution in percent of daily calories."""

    protein_pct: int
    carbs_pct: int
    fat_pct: int


@dataclass(frozen=True)
class EnergyTargets:
    bmr_kcal: int
    tdee_kcal: int
    target_calories: int
    macros: MacroSplit
    water_target_ml: int


@dataclass(frozen=True)
class WeightGoalAssessment:
    status: WeightGoalStatus
    weekly_change_kg: float


def calculate_bmr(profile: UserProfile) -> float:
    base = 10 * profile.weight_kg + 6.25 * profile.height_cm - 5 * profile.age
    return base + 5 if profile.sex == Sex.MALE else base - 161


def macro_split_for(goal: Goal) -> MacroSplit:
    if goal == Goal.MUSCLE:
        return MacroSplit(protein_pct=40, carbs_pct=35, fat_pct=25)
    if goal == Goal.LOSS:
        return MacroSplit(protein_pct=35, carbs_pct=35, fat_pct=30)
    return MacroSplit(protein_pct=25, carbs_pct=50, fat_pct=25)


def compute_energy_targets(profile: UserProfile) -> EnergyTargets:
    """Compute daily energy, macro and hydration targets for a profile.

    Args:
        profile: User profile

    Returns:
        EnergyTargets rounded to whole kcal / ml
    """
    bmr = calculate_bmr(profile)
    tdee = round(bmr * ACTIVITY_FACTORS.get(profile.activity_level, 1.2))

    target_calories = tdee
    if profile.goal == Goal.LOSS:
        target_calories = tdee - LOSS_DEFICIT_KCAL
    elif profile.goal == Goal.MUSCLE:
        target_calories = tdee + MUSCLE_SURPLUS_KCAL

    return EnergyTargets(
        bmr_kcal=round(bmr),
        tdee_kcal=tdee,
        target_calories=target_calories,
        macros=macro_split_for(profile.goal),
        water_target_ml=round(profile.weight_kg * WATER_ML_PER_KG),
    )


def assess_weight_goal(current_weight_kg: float, target_weight_kg: float, weeks: int, goal: Goal) -> WeightGoalAssessment:
    """Classify how realistic a weight goal is.

    The declared goal picks the limits: a loss goal allows up to ~0.75 kg/week
    (challenging up to 1.2), any other goal is treated as a gain and allows up
    to ~0.4 kg/week (challenging up to 0.6).

    Raises:
        ValueError: If weeks is not positive
    """
    if weeks <= 0:
        raise ValueError(f"weeks must be positive, got {weeks}")

    weekly_change = abs(target_weight_kg - current_weight_kg) / weeks
    possible_limit, challenging_limit = (0.75, 1.2) if goal == Goal.LOSS else (0.4, 0.6)

    status: WeightGoalStatus
    if weekly_change <= possible_limit:
        status = "possible"
    elif weekly_change <= challenging_limit:
        status = "challenging"
    else:
        status = "not_possible"

    return WeightGoalAssessment(status=status, weekly_change_kg=weekly_change)
