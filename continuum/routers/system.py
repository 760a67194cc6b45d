from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from continuum.config import get_settings
from continuum.core.background import BackgroundTaskCoordinator
from continuum.routers.utils.dependencies import (
    get_coordinator,
    get_promotion_catalog,
)
from continuum.services.promotion_service import PromotionCatalog

router = APIRouter(tags=["system"])


@router.get("/health", response_class=PlainTextResponse)
def health() -> str:
    return "ok"


@router.get("/system/status")
def system_status(
    coordinator: BackgroundTaskCoordinator = Depends(get_coordinator),
    catalog: PromotionCatalog = Depends(get_promotion_catalog),
) -> dict:
    """Non-sensitive runtime state for troubleshooting."""
    s = get_settings()
    return {
        "app": s.app_name,
        "environment": s.environment,
        "background_tasks_pending": coordinator.pending,
        "background_task_failures": coordinator.failures,
        "promotable_items": len(catalog.snapshot),
        "promotions_refreshed_at": catalog.refreshed_at,
        "twilio_enabled": s.twilio_enabled,
        "knowledge_base_enabled": s.knowledge_base_enabled,
    }
