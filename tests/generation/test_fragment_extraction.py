import json

from fitplan.generation.extraction import chunk_model_for, extract_json_fragment, parse_chunk
from fitplan.generation.schemas import NutritionChunk, WorkoutChunk


def test_plain_json():
    assert extract_json_fragment('{"days": []}') == {"days": []}


def test_markdown_fence_is_stripped():
    content = 'Sure!\n```json\n{"days": [], "note": "x"}\n```\nEnjoy.'

    assert extract_json_fragment(content) == {"days": [], "note": "x"}


def test_prose_around_object():
    content = 'Here is the plan: {"days": [{"day": 1}]} Let me know if you need changes.'

    assert extract_json_fragment(content) == {"days": [{"day": 1}]}


def test_no_object():
    assert extract_json_fragment("I could not produce a plan.") is None


def test_truncated_object():
    assert extract_json_fragment('{"days": [{"day": 1, "focus": "legs"') is None


def test_top_level_list_is_not_a_fragment():
    assert extract_json_fragment('[{"day": 1}]') is None


def test_parse_chunk_validates_shape(workout_chunk_payload):
    chunk = parse_chunk(json.dumps(workout_chunk_payload([1, 2, 3])), WorkoutChunk)

    assert chunk is not None
    assert [day.day for day in chunk.days] == [1, 2, 3]


def test_parse_chunk_rejects_wrong_shape(workout_chunk_payload):
    assert parse_chunk(json.dumps(workout_chunk_payload([1])), NutritionChunk) is None


def test_chunk_model_for_step(step_table):
    assert chunk_model_for(step_table.get(1)) is WorkoutChunk
    assert chunk_model_for(step_table.get(6)) is NutritionChunk
