from dataclasses import dataclass
from typing import Literal

from kodo.config import Config
from kodo.constants import DEFAULT_CONTEXT_LIMIT, DEFAULT_OUTPUT_LIMIT, THINKING_BUDGET_HIGH, THINKING_BUDGET_LOW
from kodo.errors import ModelResolutionError
from kodo.llm.base import CompletionClient
from kodo.llm.openai import OpenAIClient
from kodo.logging import get_logger

_logger = get_logger(__name__)

type ThinkingEffort = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class ModelMeta:
    id: str
    reasoning: bool = False
    max_context_tokens: int = DEFAULT_CONTEXT_LIMIT
    max_output_tokens: int = DEFAULT_OUTPUT_LIMIT


@dataclass(frozen=True)
class ModelInfo:
    meta: ModelMeta
    client: CompletionClient

    @property
    def id(self) -> str:
        return self.meta.id


DEFAULTS = [
    ModelMeta("glm-4.6"),
    ModelMeta("gpt-4o", max_output_tokens=16384),
    ModelMeta("gpt-4.1", max_context_tokens=1_000_000, max_output_tokens=32768),
    ModelMeta("gpt-5.2", reasoning=True, max_output_tokens=16384),
    ModelMeta("o4-mini", reasoning=True, max_context_tokens=200_000, max_output_tokens=100_000),
    ModelMeta("claude-sonnet-4-6", reasoning=True, max_context_tokens=200_000),
    ModelMeta("claude-opus-4-6", reasoning=True, max_context_tokens=200_000, max_output_tokens=16384),
]

_models: dict[str, ModelMeta] = {m.id: m for m in DEFAULTS}


def get_model_meta(model_id: str) -> ModelMeta:
    return _models.get(model_id) or ModelMeta(model_id)


def list_models() -> list[str]:
    return list(_models)


def resolve_model(explicit_id: str | None, default_id: str | None, config: Config) -> ModelInfo:
    """Pick the model for a task: explicit id, then the task default, then the configured model."""
    model_id = explicit_id or default_id or config.model
    if not model_id:
        raise ModelResolutionError("A language model must be specified in config or arguments.")
    if not config.openai_api_key:
        raise ModelResolutionError("OPENAI_API_KEY is required to call the agent.")

    _logger.debug("Resolved model %s", model_id)
    return ModelInfo(
        meta=get_model_meta(model_id),
        client=OpenAIClient(base_url=config.openai_base_url, api_key=config.openai_api_key),
    )


def thinking_config(model: ModelMeta, effort: ThinkingEffort) -> dict | None:
    """Extra request arguments enabling extended reasoning, or None when unsupported."""
    if not model.reasoning:
        return None

    if model.id.startswith("claude-"):
        budget = THINKING_BUDGET_LOW if effort == "low" else THINKING_BUDGET_HIGH
        return {"extra_body": {"thinking": {"type": "enabled", "budget_tokens": budget}}}

    return {"reasoning_effort": effort}
