"""Structured fragment extraction from raw generation output.

Models sometimes wrap JSON in markdown fences or add a sentence around it
even when asked not to. Extraction strips fences, takes the outermost JSON
object, and validates it against the step's chunk model.
"""

import json
import re
from typing import TypeVar, assert_never

from loguru import logger
from pydantic import BaseModel, ValidationError

from fitplan.generation.schemas import NutritionChunk, WorkoutChunk
from fitplan.generation.steps import NutritionStep, StepSpec, WorkoutStep

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def chunk_model_for(step: StepSpec) -> type[WorkoutChunk] | type[NutritionChunk]:
    if isinstance(step, WorkoutStep):
        return WorkoutChunk
    if isinstance(step, NutritionStep):
        return NutritionChunk
    assert_never(step)


def extract_json_fragment(content: str) -> dict | None:
    """Extract the outermost JSON object from raw output.

    Returns:
        Parsed object, or None if no well-formed object is present
    """
    text = content.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        logger.debug(f"JSON fragment did not parse: {e.msg} at position {e.pos}")
        return None

    return data if isinstance(data, dict) else None


def parse_chunk(content: str, model: type[ModelT]) -> ModelT | None:
    """Extract and validate a chunk.

    Returns:
        Validated model instance, or None if the output has no usable fragment
    """
    data = extract_json_fragment(content)
    if data is None:
        return None

    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug(f"JSON fragment failed {model.__name__} validation with {e.error_count()} errors")
        return None
