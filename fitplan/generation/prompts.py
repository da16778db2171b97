"""Generation instructions per step."""

from typing import assert_never

from fitplan.generation.client import GenerationInstruction
from fitplan.generation.schemas import NutritionChunk, WorkoutChunk
from fitplan.generation.steps import NutritionStep, StepSpec, WorkoutStep
from fitplan.profile.context import PlanContext

SYSTEM_PROMPT = """You are a certified health and fitness coach and registered dietitian.

You design safe, personalised training and nutrition plans from a client profile
and pre-computed energy targets.

Rules:
- Respect every physical impediment or health condition the client reports.
- Only prescribe exercises that use the client's available equipment types.
- Each workout day must fit the client's daily time, including warm-up and cool-down.
- Output ONLY a single JSON object matching the provided schema. No markdown, no commentary.
"""


def _profile_block(context: PlanContext) -> str:
    profile = context.profile
    energy = context.energy
    macros = energy.macros
    return f"""Client profile:
- Sex: {profile.sex.value}
- Age: {profile.age}
- Weight (kg): {profile.weight_kg}
- Height (cm): {profile.height_cm}
- Goal: {profile.goal.value}
- Activity level: {profile.activity_level.value}
- Difficulty: {profile.difficulty.value}
- Impediments: {profile.impediments or "none reported"}
- Somatotype: {profile.somatotype or "not specified"}
- Current body composition: {profile.current_body_comp or "not specified"}
- Target body composition: {profile.target_body_comp or "not specified"}
- Minutes per day: {profile.time_per_day_min}
- Equipment types: {", ".join(context.equipment_types)}
- Output language: {profile.language}

Energy targets:
- BMR: {energy.bmr_kcal} kcal
- TDEE: {energy.tdee_kcal} kcal
- Daily calorie target: {energy.target_calories} kcal
- Macros: protein {macros.protein_pct}%, carbs {macros.carbs_pct}%, fat {macros.fat_pct}%
- Water target: {energy.water_target_ml} ml
"""


def _workout_task(context: PlanContext, step: WorkoutStep) -> str:
    return f"""Task: write workout days {step.first_day} to {step.last_day} of a {step.total_workout_days}-day training block.

- Return exactly {step.day_count} entries in "days", numbered {step.first_day} to {step.last_day} in order.
- Each session lasts about {context.profile.time_per_day_min} minutes including ~5 min warm-up and ~5 min cool-down.
- Spread active or complete rest days across the block.
- Estimate calories burnt for a {context.profile.weight_kg} kg client.
"""


def _nutrition_task(context: PlanContext, step: NutritionStep) -> str:
    return f"""Task: write a {step.day_count}-day meal plan, a short overall plan summary, and hydration guidance.

- Return exactly {step.day_count} entries in "nutrition_days", numbered 1 to {step.day_count}.
- Six meals per day; each day within ±50 kcal of {context.energy.target_calories} kcal.
- Lunch and dinner include a recipe and a detailed ingredient list.
- Hydration: {context.energy.water_target_ml} ml per day with a reminder schedule.
"""


def build_instruction(context: PlanContext, step: StepSpec) -> GenerationInstruction:
    """Build the generation instruction for one step."""
    if isinstance(step, WorkoutStep):
        return GenerationInstruction(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=f"{_profile_block(context)}\n{_workout_task(context, step)}",
            schema_name="workout_chunk",
            json_schema=WorkoutChunk.model_json_schema(),
        )
    if isinstance(step, NutritionStep):
        return GenerationInstruction(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=f"{_profile_block(context)}\n{_nutrition_task(context, step)}",
            schema_name="nutrition_chunk",
            json_schema=NutritionChunk.model_json_schema(),
        )
    assert_never(step)
