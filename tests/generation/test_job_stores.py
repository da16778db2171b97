from dataclasses import replace
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from fitplan.db.models import FitnessPlan
from fitplan.generation.assembler import Assembler
from fitplan.generation.errors import JobConflictError, JobNotFoundError, PersistenceError
from fitplan.generation.jobs import GenerationJob, JobStatus
from fitplan.generation.merger import merge_chunk
from fitplan.generation.schemas import NutritionChunk
from fitplan.generation.stores import SqlJobStore, SqlPlanStore


@pytest.fixture
def store(session_factory):
    return SqlJobStore(session_factory)


@pytest.fixture
def new_job(plan_context):
    return GenerationJob.new(user_id="user-1", context=plan_context, total_steps=6)


def test_create_and_load_round_trip(store, new_job, plan_context):
    store.create(new_job)

    loaded = store.load(new_job.id)

    assert loaded.id == new_job.id
    assert loaded.status == JobStatus.PENDING
    assert loaded.current_step == 0
    assert loaded.version == 0
    assert loaded.context == plan_context
    assert loaded.created_at == new_job.created_at
    assert loaded.created_at.tzinfo is not None


def test_load_unknown_job(store):
    with pytest.raises(JobNotFoundError):
        store.load("missing")


def test_save_bumps_version_and_writes_all_fields(store, new_job, accumulator_with):
    store.create(new_job)

    saved = store.save(new_job.advanced(1, accumulator_with([1, 2, 3])))

    assert saved.version == 1
    loaded = store.load(new_job.id)
    assert loaded.version == 1
    assert loaded.status == JobStatus.GENERATING
    assert loaded.current_step == 1
    assert [day.day for day in loaded.accumulator.workout_days] == [1, 2, 3]


def test_stale_save_conflicts(store, new_job, accumulator_with):
    store.create(new_job)
    store.save(new_job.advanced(1, accumulator_with([1, 2, 3])))

    with pytest.raises(JobConflictError) as exc_info:
        store.save(new_job.failed("late writer"))

    assert exc_info.value.expected_version == 0
    loaded = store.load(new_job.id)
    assert loaded.status == JobStatus.GENERATING
    assert loaded.error_detail is None


def test_save_unknown_job(store, new_job):
    with pytest.raises(JobNotFoundError):
        store.save(new_job)


def test_failed_transition_keeps_step_and_accumulator(store, new_job, accumulator_with):
    store.create(new_job)
    advanced = store.save(new_job.advanced(1, accumulator_with([1, 2, 3])))

    store.save(advanced.failed("permanent-refused: step 2: generator refused"))

    loaded = store.load(new_job.id)
    assert loaded.status == JobStatus.ERROR
    assert loaded.current_step == 1
    assert loaded.error_detail == "permanent-refused: step 2: generator refused"
    assert len(loaded.accumulator.workout_days) == 3


def test_unreachable_database_raises_persistence_error(new_job):
    # No tables were created on this engine
    engine = create_engine("sqlite://")
    store = SqlJobStore(sessionmaker(bind=engine))

    with pytest.raises(PersistenceError):
        store.create(new_job)
    with pytest.raises(PersistenceError):
        store.load(new_job.id)
    with pytest.raises(PersistenceError):
        store.save(replace(new_job, current_step=1))


@pytest.fixture
def finalized_plan(step_table, accumulator_with, nutrition_chunk_payload):
    chunk = NutritionChunk.model_validate(nutrition_chunk_payload(range(1, 8)))
    accumulator = merge_chunk(accumulator_with(range(1, 16)), step_table.get(6), chunk)
    now = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
    return Assembler(step_table, duration_days=30).finalize(
        accumulator, job_id="job-1", user_id="user-1", now=now
    )


def test_plan_persist_is_idempotent(session_factory, finalized_plan):
    plans = SqlPlanStore(session_factory)

    first = plans.persist(finalized_plan)
    second = plans.persist(finalized_plan)

    assert first == second == finalized_plan.id
    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(FitnessPlan)) == 1


def test_plan_load_round_trip(session_factory, finalized_plan):
    plans = SqlPlanStore(session_factory)
    plans.persist(finalized_plan)

    loaded = plans.load(finalized_plan.id)

    assert loaded is not None
    assert loaded.workout_days == finalized_plan.workout_days
    assert loaded.nutrition_days == finalized_plan.nutrition_days
    assert loaded.hydration == finalized_plan.hydration
    assert loaded.duration_days == 30
    assert loaded.start_date == finalized_plan.start_date
    assert loaded.end_date == finalized_plan.end_date
    assert loaded.end_date.tzinfo is not None


def test_plan_load_missing(session_factory):
    assert SqlPlanStore(session_factory).load("missing") is None


def _completed_job(store, job, accumulator, plan):
    store.create(job)
    advanced = store.save(job.advanced(5, accumulator))
    return advanced.completed(6, accumulator, plan.id)


def test_save_with_plan_writes_both(session_factory, store, plan_context, accumulator_with, finalized_plan):
    job = replace(GenerationJob.new(user_id="user-1", context=plan_context, total_steps=6), id="job-1")
    completed = _completed_job(store, job, accumulator_with(range(1, 16)), finalized_plan)

    store.save(completed, finalized_plan)

    assert store.load("job-1").result_plan_id == finalized_plan.id
    assert SqlPlanStore(session_factory).load(finalized_plan.id) is not None


def test_conflicting_save_with_plan_writes_no_plan(session_factory, store, plan_context, accumulator_with, finalized_plan):
    job = replace(GenerationJob.new(user_id="user-1", context=plan_context, total_steps=6), id="job-1")
    completed = _completed_job(store, job, accumulator_with(range(1, 16)), finalized_plan)
    store.save(replace(completed, status=JobStatus.ERROR, result_plan_id=None, error_detail="permanent-refused"))

    with pytest.raises(JobConflictError):
        store.save(completed, finalized_plan)

    assert store.load("job-1").status == JobStatus.ERROR
    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(FitnessPlan)) == 0
