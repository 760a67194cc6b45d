"""Read-only promotable item snapshot used during request handling."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PromotableItemSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    starts_at: Optional[datetime] = None

    def mentioned_in(self, text: str) -> bool:
        return bool(self.title) and self.title.lower() in (text or "").lower()
