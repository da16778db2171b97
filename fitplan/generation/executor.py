"""Chunk executor with output-budget escalation.

Runs one step against the text generation client, walking a fixed ascending
sequence of output budgets:

- size-limit transport failure, truncation, or empty payload: next budget
- refusal or content filter: abort, no higher budget is tried
- content without a usable JSON fragment: next budget while any remain
- parsed fragment: return immediately

Once the last budget has been tried without a usable fragment the step fails
as permanent-exhausted.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from loguru import logger

from fitplan.generation.client import FinishReason, GenerationInstruction, GenerationResponse, TextGenerationClient
from fitplan.generation.errors import (
    FailureKind,
    GenerationTransportError,
    PermanentGenerationError,
    TransientGenerationError,
)
from fitplan.generation.extraction import chunk_model_for, parse_chunk
from fitplan.generation.prompts import build_instruction
from fitplan.generation.schemas import Chunk
from fitplan.generation.steps import StepSpec
from fitplan.profile.context import PlanContext

InstructionBuilder = Callable[[PlanContext, StepSpec], GenerationInstruction]


class ChunkExecutor:
    """Generates one step's chunk, escalating the output budget on capacity failures."""

    def __init__(
        self,
        client: TextGenerationClient,
        budgets: Sequence[int] | None = None,
        instruction_builder: InstructionBuilder = build_instruction,
    ):
        if budgets is None:
            from fitplan.config.settings import settings

            budgets = settings.generation_budgets
        budgets = tuple(budgets)
        if not budgets:
            raise ValueError("At least one generation budget is required")
        if any(later <= earlier for earlier, later in zip(budgets, budgets[1:], strict=False)):
            raise ValueError(f"Generation budgets must be strictly ascending, got {list(budgets)}")
        self._client = client
        self._budgets = budgets
        self._build_instruction = instruction_builder

    @property
    def budgets(self) -> tuple[int, ...]:
        return self._budgets

    def run(self, context: PlanContext, step: StepSpec) -> Chunk:
        """Generate and parse the chunk for a step.

        Args:
            context: Generation context snapshot from the job
            step: Step to generate

        Returns:
            Parsed WorkoutChunk or NutritionChunk

        Raises:
            PermanentGenerationError: On refusal / content filter, or once every
                budget has been tried without a usable chunk
            GenerationTransportError: On transport failures unrelated to size
        """
        instruction = self._build_instruction(context, step)
        model = chunk_model_for(step)
        attempted: list[int] = []
        last_failure: TransientGenerationError | None = None

        for level, budget in enumerate(self._budgets, start=1):
            attempted.append(budget)
            step_log = logger.bind(step=step.index, kind=str(step.kind), budget=budget, level=level, levels=len(self._budgets))
            step_log.info("Generating chunk")

            try:
                response = self._request(instruction, budget)
                self._raise_for_response(response, step.index, budget, attempted)
                chunk = parse_chunk(response.content or "", model)
                if chunk is None:
                    raise TransientGenerationError(FailureKind.TRANSIENT_MALFORMED, budget, "no well-formed JSON fragment in output")
            except TransientGenerationError as e:
                last_failure = e
                step_log.bind(outcome=str(e.kind)).warning(f"Chunk attempt failed, escalating: {e}")
                continue

            step_log.bind(outcome="ok").info("Chunk generated")
            return chunk

        reason = "all budget levels exhausted"
        if last_failure is not None:
            reason = f"{reason}, last failure {last_failure.kind} at budget {last_failure.budget}"
        raise PermanentGenerationError(FailureKind.PERMANENT_EXHAUSTED, step.index, reason, attempted)

    def _request(self, instruction: GenerationInstruction, budget: int) -> GenerationResponse:
        try:
            return self._client.complete(instruction, budget)
        except GenerationTransportError as e:
            if e.capacity_limited:
                raise TransientGenerationError(FailureKind.TRANSIENT_TRUNCATED, budget, str(e)) from e
            raise

    @staticmethod
    def _raise_for_response(response: GenerationResponse, step_index: int, budget: int, attempted: list[int]) -> None:
        """Classify a response that cannot yield a chunk.

        Raises:
            PermanentGenerationError: Refusal or content filter
            TransientGenerationError: Truncated or empty output
        """
        if response.finish_reason == FinishReason.CONTENT_FILTER:
            raise PermanentGenerationError(
                FailureKind.PERMANENT_REFUSED, step_index, f"content filter triggered at budget {budget}", list(attempted)
            )
        if response.refusal:
            raise PermanentGenerationError(
                FailureKind.PERMANENT_REFUSED, step_index, f"generator refused: {response.refusal}", list(attempted)
            )
        if response.finish_reason == FinishReason.LENGTH:
            raise TransientGenerationError(FailureKind.TRANSIENT_TRUNCATED, budget, "output truncated at budget")
        if not (response.content or "").strip():
            raise TransientGenerationError(FailureKind.TRANSIENT_EMPTY, budget, "empty output")
