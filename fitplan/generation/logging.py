"""Plan generation observability.

Call these before transitioning a job to "error" so every terminal failure
leaves a structured log line with the job and step it belongs to.
"""

from loguru import logger

from fitplan.generation.errors import DataIntegrityError, PermanentGenerationError


def log_data_integrity_failure(err: DataIntegrityError, context: dict[str, str | int | float | bool | None]) -> None:
    """Log a data-integrity failure with context.

    Args:
        err: The DataIntegrityError that occurred
        context: Additional context dictionary for logging
    """
    logger.bind(code=err.code, details=err.details, **context).error("PLAN_DATA_INTEGRITY_FAILED")


def log_permanent_generation_failure(err: PermanentGenerationError, context: dict[str, str | int | float | bool | None]) -> None:
    """Log a permanent generation failure with context."""
    logger.bind(
        **{
            **context,
            "kind": str(err.kind),
            "step": err.step_index,
            "attempted_budgets": err.attempted_budgets,
            "reason": err.reason,
        }
    ).error("PLAN_GENERATION_FAILED")
