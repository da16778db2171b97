"""Job and plan persistence.

JobStore.save() is the single write of a step outcome. It is guarded by the
version the job was loaded with: if another caller wrote in between, nothing
is written and JobConflictError is raised. On the final step the finalized
plan is inserted in the same transaction, so a conflict rolls it back too.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fitplan.db.models import FitnessPlan, PlanGenerationJob
from fitplan.db.session import session_scope
from fitplan.generation.errors import JobConflictError, JobNotFoundError, PersistenceError
from fitplan.generation.jobs import GenerationJob, JobStatus
from fitplan.generation.schemas import Accumulator, FinalizedPlan, HydrationTarget, NutritionDay, WorkoutDay
from fitplan.profile.context import PlanContext


class JobStore(Protocol):
    def create(self, job: GenerationJob) -> GenerationJob: ...

    def load(self, job_id: str) -> GenerationJob:
        """Raises JobNotFoundError if the job does not exist."""
        ...

    def save(self, job: GenerationJob, plan: FinalizedPlan | None = None) -> GenerationJob:
        """Write job if the stored version still equals job.version.

        When plan is given it is persisted atomically with the job write.
        Returns the job with its new version. Raises JobConflictError otherwise,
        with nothing written.
        """
        ...


class PlanStore(Protocol):
    def persist(self, plan: FinalizedPlan) -> str: ...


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the database as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_job(row: PlanGenerationJob) -> GenerationJob:
    return GenerationJob(
        id=row.id,
        user_id=row.user_id,
        status=JobStatus(row.status),
        current_step=row.current_step,
        total_steps=row.total_steps,
        accumulator=Accumulator.model_validate(row.accumulator),
        context=PlanContext.model_validate(row.context),
        version=row.version,
        result_plan_id=row.result_plan_id,
        error_detail=row.error_detail,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _row_to_plan(row: FitnessPlan) -> FinalizedPlan:
    data = row.plan_data
    return FinalizedPlan(
        id=row.id,
        user_id=row.user_id,
        job_id=row.job_id,
        workout_days=tuple(WorkoutDay.model_validate(day) for day in data["workout_days"]),
        nutrition_days=tuple(NutritionDay.model_validate(day) for day in data["nutrition_days"]),
        summary=data["summary"],
        hydration=HydrationTarget.model_validate(data["hydration"]),
        duration_days=row.duration_days,
        start_date=_as_utc(row.start_date),
        end_date=_as_utc(row.end_date),
        created_at=_as_utc(row.created_at),
    )


class SqlPlanStore:
    """PlanStore backed by the fitness_plans table.

    persist() is idempotent on plan id: persisting the same plan twice
    returns the existing id.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    def persist(self, plan: FinalizedPlan, session: Session | None = None) -> str:
        """Insert a plan unless it already exists.

        Args:
            plan: Finalized plan
            session: Open session to join. The caller owns its transaction;
                without one the plan is committed on its own.

        Returns:
            The plan id
        """
        if session is not None:
            self._add(session, plan)
            return plan.id

        try:
            with session_scope(self._session_factory) as own_session:
                self._add(own_session, plan)
        except IntegrityError:
            # Lost an insert race for the same job; the winner's row is the plan
            logger.bind(plan_id=plan.id, job_id=plan.job_id).info("Plan inserted concurrently, reusing")
            return plan.id
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to persist plan {plan.id}: {e}") from e
        return plan.id

    def _add(self, session: Session, plan: FinalizedPlan) -> None:
        if session.get(FitnessPlan, plan.id) is not None:
            logger.bind(plan_id=plan.id, job_id=plan.job_id).info("Plan already persisted, reusing")
            return
        session.add(
            FitnessPlan(
                id=plan.id,
                user_id=plan.user_id,
                job_id=plan.job_id,
                plan_data=plan.plan_document(),
                duration_days=plan.duration_days,
                start_date=plan.start_date,
                end_date=plan.end_date,
                created_at=plan.created_at,
            )
        )
        session.flush()
        logger.bind(plan_id=plan.id, job_id=plan.job_id, workout_days=len(plan.workout_days)).info(
            "Finalized plan persisted"
        )

    def load(self, plan_id: str) -> FinalizedPlan | None:
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(FitnessPlan, plan_id)
                return _row_to_plan(row) if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load plan {plan_id}: {e}") from e


class SqlJobStore:
    """JobStore backed by the plan_generation_jobs table.

    Completed jobs write their plan through plans, inside the job's transaction.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None, plans: SqlPlanStore | None = None):
        self._session_factory = session_factory
        self._plans = plans or SqlPlanStore(session_factory)

    def create(self, job: GenerationJob) -> GenerationJob:
        try:
            with session_scope(self._session_factory) as session:
                session.add(
                    PlanGenerationJob(
                        id=job.id,
                        user_id=job.user_id,
                        status=str(job.status),
                        current_step=job.current_step,
                        total_steps=job.total_steps,
                        accumulator=job.accumulator.model_dump(mode="json"),
                        context=job.context.model_dump(mode="json"),
                        result_plan_id=job.result_plan_id,
                        error_detail=job.error_detail,
                        version=job.version,
                        created_at=job.created_at,
                        updated_at=job.updated_at,
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create generation job {job.id}: {e}") from e

        logger.bind(job_id=job.id, user_id=job.user_id, total_steps=job.total_steps).info("Generation job created")
        return job

    def load(self, job_id: str) -> GenerationJob:
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(PlanGenerationJob, job_id)
                if row is None:
                    raise JobNotFoundError(job_id)
                return _row_to_job(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load generation job {job_id}: {e}") from e

    def save(self, job: GenerationJob, plan: FinalizedPlan | None = None) -> GenerationJob:
        new_version = job.version + 1
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    update(PlanGenerationJob)
                    .where(PlanGenerationJob.id == job.id, PlanGenerationJob.version == job.version)
                    .values(
                        status=str(job.status),
                        current_step=job.current_step,
                        accumulator=job.accumulator.model_dump(mode="json"),
                        result_plan_id=job.result_plan_id,
                        error_detail=job.error_detail,
                        updated_at=job.updated_at,
                        version=new_version,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    exists = session.scalar(select(PlanGenerationJob.id).where(PlanGenerationJob.id == job.id))
                    if exists is None:
                        raise JobNotFoundError(job.id)
                    raise JobConflictError(job.id, job.version)
                if plan is not None:
                    self._plans.persist(plan, session=session)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save generation job {job.id}: {e}") from e

        logger.bind(
            job_id=job.id,
            status=str(job.status),
            current_step=job.current_step,
            version=new_version,
            plan_id=plan.id if plan is not None else None,
        ).debug("Generation job saved")
        return replace(job, version=new_version)
