"""Plan assembly.

Turns a fully merged accumulator into an immutable FinalizedPlan. A short or
partial plan is never produced: coverage is checked against the step table
first. Persisting the plan is left to the job store, which writes it in the
same transaction that completes the job.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from loguru import logger

from fitplan.generation.errors import DataIntegrityError
from fitplan.generation.schemas import Accumulator, FinalizedPlan, HydrationTarget
from fitplan.generation.steps import StepTable

# Namespace for plan ids derived from job ids
PLAN_ID_NAMESPACE = uuid.UUID("6f3b1c2e-9a4d-5e7f-8b1a-2c3d4e5f6a7b")


def plan_id_for_job(job_id: str) -> str:
    """Deterministic plan id for a job, so a retried finalize maps to one plan."""
    return str(uuid.uuid5(PLAN_ID_NAMESPACE, job_id))


def check_coverage(accumulator: Accumulator, table: StepTable) -> tuple[str, HydrationTarget]:
    """Verify the accumulator covers every day the step table declares.

    Returns:
        The plan summary and hydration target, both guaranteed present

    Raises:
        DataIntegrityError: With code INCOMPLETE_COVERAGE listing every gap
    """
    errors: list[str] = []

    workout_days = [day.day for day in accumulator.workout_days]
    expected_workout = list(range(1, table.total_workout_days + 1))
    if len(workout_days) != table.total_workout_days:
        errors.append(f"{len(workout_days)}/{table.total_workout_days} workout days present")
    elif workout_days != expected_workout:
        errors.append(f"workout days {workout_days} are not 1..{table.total_workout_days} in order")

    nutrition_count = len(accumulator.nutrition_days)
    if nutrition_count == 0 or nutrition_count != table.nutrition_day_count:
        errors.append(f"{nutrition_count}/{table.nutrition_day_count} nutrition days present")

    summary = accumulator.summary
    hydration = accumulator.hydration
    if not summary:
        errors.append("plan summary missing")
    if hydration is None:
        errors.append("hydration target missing")

    if errors or summary is None or hydration is None:
        raise DataIntegrityError("INCOMPLETE_COVERAGE", errors)
    return summary, hydration


class Assembler:
    def __init__(self, table: StepTable, duration_days: int | None = None):
        if duration_days is None:
            from fitplan.config.settings import settings

            duration_days = settings.plan_duration_days
        self._table = table
        self._duration_days = duration_days

    def finalize(self, accumulator: Accumulator, *, job_id: str, user_id: str, now: datetime | None = None) -> FinalizedPlan:
        """Build the finalized plan from a complete accumulator.

        Args:
            accumulator: Fully merged accumulator
            job_id: Generating job
            user_id: Owning user
            now: Creation time (defaults to current UTC time)

        Returns:
            Immutable FinalizedPlan

        Raises:
            DataIntegrityError: If coverage is incomplete
        """
        summary, hydration = check_coverage(accumulator, self._table)

        created_at = now or datetime.now(timezone.utc)
        plan = FinalizedPlan(
            id=plan_id_for_job(job_id),
            user_id=user_id,
            job_id=job_id,
            workout_days=tuple(accumulator.workout_days),
            nutrition_days=tuple(accumulator.nutrition_days),
            summary=summary,
            hydration=hydration,
            duration_days=self._duration_days,
            start_date=created_at,
            end_date=created_at + timedelta(days=self._duration_days),
            created_at=created_at,
        )
        logger.bind(plan_id=plan.id, job_id=job_id, workout_days=len(plan.workout_days)).debug("Plan finalized")
        return plan
