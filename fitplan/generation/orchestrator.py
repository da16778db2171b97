"""Plan generation orchestrator.

advance(job_id) moves a job forward by exactly one step:

1. Load the job. Terminal jobs are returned unchanged, with no write.
2. Look up current_step + 1 in the step table (out of range fails loudly).
3. Generate the chunk (ChunkExecutor), merge it (merge_chunk), and on the
   last step finalize the plan (Assembler).
4. Persist the outcome as one version-guarded write. A finalized plan is
   inserted in that same transaction, so a caller that loses the race leaves
   no plan behind.

Permanent generation failures and data-integrity failures persist
status=error and leave current_step and the accumulator as they were.
Persistence and transport failures write nothing and propagate; the job
stays resumable.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from fitplan.generation.assembler import Assembler
from fitplan.generation.client import OpenAITextGenerationClient, TextGenerationClient
from fitplan.generation.errors import (
    DataIntegrityError,
    JobBusyError,
    JobConflictError,
    PermanentGenerationError,
)
from fitplan.generation.executor import ChunkExecutor
from fitplan.generation.jobs import GenerationJob, JobState
from fitplan.generation.logging import log_data_integrity_failure, log_permanent_generation_failure
from fitplan.generation.merger import merge_chunk
from fitplan.generation.schemas import FinalizedPlan
from fitplan.generation.steps import StepTable, default_step_table
from fitplan.generation.stores import JobStore, SqlJobStore
from fitplan.profile.context import ContextCache, build_plan_context
from fitplan.profile.models import UserProfile


class GenerationOrchestrator:
    def __init__(
        self,
        jobs: JobStore,
        executor: ChunkExecutor,
        assembler: Assembler,
        table: StepTable,
        context_cache: ContextCache | None = None,
    ):
        self._jobs = jobs
        self._executor = executor
        self._assembler = assembler
        self._table = table
        self._context_cache = context_cache

    def start(self, user_id: str, profile: UserProfile) -> JobState:
        """Create a new pending job for a user profile.

        A new planning attempt always gets a new job; finished or failed jobs
        are never restarted.
        """
        context = build_plan_context(profile, cache=self._context_cache)
        job = self._jobs.create(GenerationJob.new(user_id=user_id, context=context, total_steps=self._table.total_steps))
        return JobState.from_job(job)

    def status(self, job_id: str) -> JobState:
        return JobState.from_job(self._jobs.load(job_id))

    def advance(self, job_id: str) -> JobState:
        """Advance a job by one step.

        Args:
            job_id: Job to advance

        Returns:
            Job state after this call

        Raises:
            JobNotFoundError: If the job does not exist
            JobBusyError: If another caller advanced the job concurrently
            StepOutOfRangeError: If the stored step counter has no next step
            PersistenceError: If the store is unreachable (nothing written)
            GenerationTransportError: If the generator failed in transit (nothing written)
        """
        job = self._jobs.load(job_id)
        if job.is_terminal:
            logger.bind(job_id=job.id, status=str(job.status)).debug("Job is terminal, nothing to advance")
            return JobState.from_job(job)

        if job.total_steps != self._table.total_steps:
            raise DataIntegrityError(
                "STEP_TABLE_MISMATCH",
                [f"job {job.id} was created for {job.total_steps} steps, table defines {self._table.total_steps}"],
            )

        next_step = job.current_step + 1
        step = self._table.get(next_step)
        log_context = {"job_id": job.id, "user_id": job.user_id, "step": step.index, "total_steps": job.total_steps}
        logger.bind(**log_context, kind=str(step.kind)).info("Advancing generation job")

        try:
            chunk = self._executor.run(job.context, step)
        except PermanentGenerationError as e:
            log_permanent_generation_failure(e, log_context)
            return self._commit(job, job.failed(e.detail))

        try:
            accumulator = merge_chunk(job.accumulator, step, chunk)
            plan = None
            if step.index == job.total_steps:
                plan = self._assembler.finalize(accumulator, job_id=job.id, user_id=job.user_id)
        except DataIntegrityError as e:
            log_data_integrity_failure(e, log_context)
            return self._commit(job, job.failed(e.detail))

        if plan is None:
            return self._commit(job, job.advanced(step.index, accumulator))

        state = self._commit(job, job.completed(step.index, accumulator, plan.id), plan=plan)
        logger.bind(**log_context, plan_id=plan.id).info("Generation job completed")
        return state

    def _commit(self, loaded: GenerationJob, updated: GenerationJob, plan: FinalizedPlan | None = None) -> JobState:
        """Persist a transition, translating a lost race into JobBusyError."""
        try:
            saved = self._jobs.save(updated, plan)
        except JobConflictError as e:
            current = self._jobs.load(loaded.id)
            logger.bind(job_id=loaded.id, loaded_step=loaded.current_step, current_step=current.current_step).warning(
                "Lost race advancing job, discarding this step's result"
            )
            raise JobBusyError(JobState.from_job(current)) from e

        logger.bind(
            job_id=saved.id,
            status=str(saved.status),
            current_step=saved.current_step,
            total_steps=saved.total_steps,
        ).info("Generation job state persisted")
        return JobState.from_job(saved)


def build_orchestrator(
    client: TextGenerationClient | None = None,
    session_factory: sessionmaker[Session] | None = None,
    table: StepTable | None = None,
    context_cache: ContextCache | None = None,
) -> GenerationOrchestrator:
    """Wire an orchestrator with SQL stores and the configured generation backend."""
    table = table or default_step_table()
    return GenerationOrchestrator(
        jobs=SqlJobStore(session_factory),
        executor=ChunkExecutor(client or OpenAITextGenerationClient()),
        assembler=Assembler(table),
        table=table,
        context_cache=context_cache,
    )
