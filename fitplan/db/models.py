from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


class PlanGenerationJob(Base):
    """Persisted state of one progressive plan-generation workflow.

    Stores:
    - status: pending | generating | completed | error
    - current_step: last successfully merged step (0 before the first step)
    - total_steps: size of the step table the job was created against
    - accumulator: partial plan document (JSON) built up across steps
    - context: immutable snapshot of the user data every step is generated from
    - result_plan_id: set only once the job is completed
    - error_detail: classified failure reason, set only once the job errored
    - version: optimistic concurrency counter, bumped on every write

    Constraints:
    - status, current_step, accumulator and result_plan_id / error_detail are
      always written together in a single UPDATE guarded by version
    """

    __tablename__ = "plan_generation_jobs"

    id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_steps: Mapped[int] = mapped_column(Integer, nullable=False)
    accumulator: Mapped[dict] = mapped_column(JSON, nullable=False)
    context: Mapped[dict] = mapped_column(JSON, nullable=False)
    result_plan_id: Mapped[str | None] = mapped_column(String, nullable=True)
    error_detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("idx_plan_generation_jobs_user_status", "user_id", "status"),)


class FitnessPlan(Base):
    """Finalized, immutable fitness and nutrition plan.

    Plans are never updated - only inserted. The id is derived from the
    generating job, so a retried completion cannot create a second row.
    """

    __tablename__ = "fitness_plans"

    id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    job_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    plan_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("idx_fitness_plans_user_created", "user_id", "created_at"),)
