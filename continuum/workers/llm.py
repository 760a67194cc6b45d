from __future__ import annotations

import re
from typing import Any, List, Optional, Sequence

from pydantic_ai import Agent
from pydantic_ai.messages import (
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from continuum.config import get_settings
from continuum.exceptions import GenerationUnavailable
from continuum.infra.logging_config import get_logger
from continuum.prompts.intent import INTENT_INSTRUCTIONS
from continuum.prompts.system_prompt import (
    KNOWLEDGE_HEADER,
    MEMORY_HEADER,
    PROFILE_CONTEXT_TEMPLATE,
    PROMOTIONS_HEADER,
)
from continuum.schemas.messages import HistoryEntry
from continuum.schemas.promotion import PromotableItemSnapshot
from continuum.schemas.transcript import TranscriptIntent

logger = get_logger("workers.llm")

# Replies sometimes echo the "(SMS)" label used in history
_LEADING_LABEL = re.compile(r"^[\(\[].*?[\)\]]\s*")


def clean_reply(text: str) -> str:
    return _LEADING_LABEL.sub("", (text or "").strip(), count=1).strip()


def _build_model(model_name: str, api_key: Optional[str], api_base: Optional[str]):
    provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
    return OpenAIChatModel(model_name, provider=provider)


def _history_to_message_list(history: Sequence[HistoryEntry]) -> List[Any]:
    """Convert prior turns into pydantic_ai messages, labelling each with its channel."""
    out: List[Any] = []
    for entry in history:
        content = (entry.content or "").strip()
        if not content:
            continue
        labelled = f"({entry.channel_label}) {content}"
        if entry.role == "assistant":
            out.append(ModelResponse(parts=[TextPart(content=labelled)]))
        else:
            out.append(ModelRequest(parts=[UserPromptPart(content=labelled)]))
    return out


def _format_promotions(items: Sequence[PromotableItemSnapshot]) -> str:
    lines = []
    for item in items:
        line = f"- {item.title}"
        if item.starts_at:
            line += f" ({item.starts_at:%Y-%m-%d})"
        if item.description:
            line += f": {item.description}"
        if item.url:
            line += f" {item.url}"
        lines.append(line)
    return "\n".join(lines)


def compose_system_prompt(
    system_prompt: str,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    memory_summary: str = "",
    knowledge: str = "",
    promotions: Sequence[PromotableItemSnapshot] = (),
) -> str:
    """System prompt followed by profile, knowledge, memory and promotion blocks."""
    blocks = [
        system_prompt.rstrip(),
        PROFILE_CONTEXT_TEMPLATE.format(
            name=full_name or "Unknown", email=email or "Unknown"
        ),
    ]
    if knowledge:
        blocks.append(KNOWLEDGE_HEADER + knowledge)
    if memory_summary:
        blocks.append(MEMORY_HEADER + memory_summary)
    if promotions:
        blocks.append(PROMOTIONS_HEADER + _format_promotions(promotions))
    return "\n\n".join(blocks)


class LLMRunner:
    """Composes the agent's reply to one inbound SMS turn."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ) -> None:
        logger.info(f"Initializing LLM runner with model {model_name}")
        self._agent = Agent(_build_model(model_name, api_key, api_base))

    async def run(
        self,
        text: str,
        system_prompt: str,
        history: Optional[Sequence[HistoryEntry]] = None,
    ) -> str:
        # https://github.com/pydantic/pydantic-ai/issues/4039
        message_history = [ModelRequest(parts=[SystemPromptPart(content=system_prompt)])]
        message_history += _history_to_message_list(history or [])
        try:
            result = await self._agent.run(
                f"(SMS) {text}", message_history=message_history
            )
        except Exception as e:
            raise GenerationUnavailable(f"reply generation failed: {e}") from e
        reply = clean_reply(str(result.output or ""))
        if not reply:
            raise GenerationUnavailable("reply generation returned no text")
        return reply


class LLMTextGenerator:
    """Single-prompt text generation used by the memory archivist."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ) -> None:
        self._agent = Agent(_build_model(model_name, api_key, api_base))

    async def generate(self, prompt: str, instructions: Optional[str] = None) -> str:
        message_history = None
        if instructions:
            message_history = [
                ModelRequest(parts=[SystemPromptPart(content=instructions)])
            ]
        try:
            result = await self._agent.run(prompt, message_history=message_history)
        except Exception as e:
            raise GenerationUnavailable(f"text generation failed: {e}") from e
        text = str(result.output or "").strip()
        if not text:
            raise GenerationUnavailable("text generation returned no text")
        return text


class IntentExtractor:
    """Structured extraction of profile details and transcript references."""

    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ) -> None:
        self._agent = Agent(
            _build_model(model_name, api_key, api_base),
            output_type=TranscriptIntent,
            instructions=INTENT_INSTRUCTIONS,
        )

    async def extract(self, prompt: str) -> TranscriptIntent:
        try:
            result = await self._agent.run(prompt)
        except Exception as e:
            raise GenerationUnavailable(f"intent extraction failed: {e}") from e
        return result.output


def _log_config(model_name: str) -> None:
    settings = get_settings()
    logger.info(
        "LLM config: model=%s, api_key=%s, api_base=%s",
        model_name,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; set it to a valid OpenAI or LiteLLM API key to avoid 401 errors."
        )


def build_llm_runner_from_env() -> LLMRunner:
    settings = get_settings()
    _log_config(settings.llm_model)
    return LLMRunner(
        model_name=settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )


def build_text_generator_from_env() -> LLMTextGenerator:
    settings = get_settings()
    return LLMTextGenerator(
        model_name=settings.memory_llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )


def build_intent_extractor_from_env() -> IntentExtractor:
    settings = get_settings()
    return IntentExtractor(
        model_name=settings.memory_llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
    )
