from functools import lru_cache

from fastapi import Request

from continuum.core.background import BackgroundTaskCoordinator
from continuum.services.promotion_service import PromotionCatalog
from continuum.workers.llm import (
    IntentExtractor,
    LLMRunner,
    LLMTextGenerator,
    build_intent_extractor_from_env,
    build_llm_runner_from_env,
    build_text_generator_from_env,
)


def get_coordinator(request: Request) -> BackgroundTaskCoordinator:
    """FastAPI dependency for the app's background task coordinator."""
    return request.app.state.coordinator


def get_promotion_catalog(request: Request) -> PromotionCatalog:
    """FastAPI dependency for the shared promotable-item snapshot."""
    return request.app.state.promotion_catalog


@lru_cache
def get_reply_runner() -> LLMRunner:
    return build_llm_runner_from_env()


@lru_cache
def get_text_generator() -> LLMTextGenerator:
    return build_text_generator_from_env()


@lru_cache
def get_intent_extractor() -> IntentExtractor:
    return build_intent_extractor_from_env()
