"""Text generation client.

The pipeline talks to the generation service only through
TextGenerationClient.complete(), which issues one bounded-size request and
returns a GenerationResponse. Output-size escalation is the executor's job,
not the client's.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from loguru import logger
from openai import AzureOpenAI, BadRequestError, OpenAI, OpenAIError

from fitplan.config.settings import settings
from fitplan.generation.errors import GenerationTransportError

# Substrings of a 400 response that mean the request hit a size limit
CAPACITY_ERROR_MARKERS: tuple[str, ...] = ("max_tokens", "max_completion_tokens", "context_length")


class FinishReason(StrEnum):
    OK = "ok"
    LENGTH = "length-truncated"
    CONTENT_FILTER = "content-filtered"


@dataclass(frozen=True)
class GenerationInstruction:
    """Everything needed to ask the generation service for one step.

    Attributes:
        system_prompt: System message
        user_prompt: User message
        schema_name: Name of the structured output schema
        json_schema: JSON schema of the expected output
    """

    system_prompt: str
    user_prompt: str
    schema_name: str
    json_schema: dict = field(default_factory=dict)


@dataclass(frozen=True)
class GenerationResponse:
    content: str | None
    finish_reason: FinishReason = FinishReason.OK
    refusal: str | None = None


class TextGenerationClient(Protocol):
    def complete(self, instruction: GenerationInstruction, budget: int) -> GenerationResponse:
        """Issue one generation request limited to budget output tokens.

        Raises:
            GenerationTransportError: If the request fails in transit
        """
        ...


def _map_finish_reason(raw: str | None) -> FinishReason:
    if raw == "length":
        return FinishReason.LENGTH
    if raw == "content_filter":
        return FinishReason.CONTENT_FILTER
    return FinishReason.OK


def is_capacity_error(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in CAPACITY_ERROR_MARKERS)


def build_openai_client() -> tuple[OpenAI, str]:
    """Create the SDK client and the model/deployment name to call.

    Azure OpenAI is used when AZURE_OPENAI_ENDPOINT is set, otherwise the
    OpenAI API.

    Raises:
        RuntimeError: If no backend is configured
    """
    if settings.azure_openai_endpoint:
        if not settings.azure_openai_deployment:
            raise RuntimeError("AZURE_OPENAI_DEPLOYMENT must be set when AZURE_OPENAI_ENDPOINT is set")
        client = AzureOpenAI(
            azure_endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key or settings.openai_api_key,
            api_version=settings.azure_openai_api_version,
        )
        logger.info(f"Using Azure OpenAI deployment={settings.azure_openai_deployment}")
        return client, settings.azure_openai_deployment

    if not settings.openai_api_key:
        raise RuntimeError(
            "OPENAI_API_KEY not set. Plan generation requires OpenAI or Azure OpenAI credentials. "
            "Set OPENAI_API_KEY or AZURE_OPENAI_ENDPOINT."
        )
    logger.info(f"Using OpenAI model={settings.plan_generation_model}")
    return OpenAI(api_key=settings.openai_api_key), settings.plan_generation_model


class OpenAITextGenerationClient:
    """TextGenerationClient backed by the OpenAI chat completions API."""

    def __init__(self, client: OpenAI | None = None, model: str | None = None, temperature: float = 1.0):
        if client is None:
            client, default_model = build_openai_client()
            model = model or default_model
        if not model:
            raise ValueError("model is required when passing an explicit client")
        self._client = client
        self._model = model
        self._temperature = temperature

    def complete(self, instruction: GenerationInstruction, budget: int) -> GenerationResponse:
        try:
            completion = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": instruction.system_prompt},
                    {"role": "user", "content": instruction.user_prompt},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": instruction.schema_name,
                        "schema": instruction.json_schema,
                        "strict": False,
                    },
                },
                temperature=self._temperature,
                max_completion_tokens=budget,
            )
        except BadRequestError as e:
            message = str(e)
            if is_capacity_error(message):
                raise GenerationTransportError(f"Size limit at budget {budget}: {message}", capacity_limited=True) from e
            raise GenerationTransportError(f"Generation request rejected: {message}") from e
        except OpenAIError as e:
            raise GenerationTransportError(f"Generation request failed: {type(e).__name__}: {e}") from e

        if not completion.choices:
            logger.warning("Generation response contained no choices", budget=budget)
            return GenerationResponse(content=None)

        choice = completion.choices[0]
        usage = completion.usage
        logger.debug(
            "Generation response received",
            finish_reason=choice.finish_reason,
            content_length=len(choice.message.content or ""),
            completion_tokens=usage.completion_tokens if usage else None,
            budget=budget,
        )
        return GenerationResponse(
            content=choice.message.content,
            finish_reason=_map_finish_reason(choice.finish_reason),
            refusal=getattr(choice.message, "refusal", None),
        )
