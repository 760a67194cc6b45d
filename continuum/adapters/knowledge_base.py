"""
Knowledge-base retrieval: embed the question and ask the store's
match_kb_chunks function for the nearest pre-indexed chunks.
"""

from __future__ import annotations

import json
import logging
from typing import Callable, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from continuum.config import get_settings

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n\n---\n\n"

MATCH_KB_CHUNKS = text(
    "SELECT doc_key, content FROM match_kb_chunks("
    "CAST(:query_embedding AS vector), :match_threshold, :match_count)"
)


def format_chunks(rows: Sequence[tuple[str, str]]) -> str:
    return CHUNK_SEPARATOR.join(
        f"[Source: {doc_key}]\n{content}" for doc_key, content in rows if content
    )


class KnowledgeBaseSearch:
    """Returns "" on any failure; retrieval is optional context for a reply."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        enabled: Optional[bool] = None,
        embedding_model: Optional[str] = None,
        match_threshold: Optional[float] = None,
        match_count: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.enabled = settings.knowledge_base_enabled if enabled is None else enabled
        self.embedding_model = embedding_model or settings.embedding_model
        self.match_threshold = (
            settings.knowledge_base_match_threshold
            if match_threshold is None
            else match_threshold
        )
        self.match_count = match_count or settings.knowledge_base_match_count
        self._client = client
        self._client_factory: Callable[[], AsyncOpenAI] = lambda: AsyncOpenAI(
            api_key=settings.litellm_api_key, base_url=settings.litellm_api_base
        )

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def embed(self, query: str) -> List[float]:
        response = await self._get_client().embeddings.create(
            model=self.embedding_model, input=query
        )
        return list(response.data[0].embedding)

    async def search(self, db: Session, query: str) -> str:
        if not self.enabled or not (query or "").strip():
            return ""
        try:
            embedding = await self.embed(query)
        except OpenAIError as e:
            logger.warning("Knowledge base embedding failed: %s", e)
            return ""
        try:
            rows = db.execute(
                MATCH_KB_CHUNKS,
                {
                    "query_embedding": json.dumps(embedding),
                    "match_threshold": self.match_threshold,
                    "match_count": self.match_count,
                },
            ).all()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Knowledge base search failed: %s", e)
            return ""
        return format_chunks([(row[0], row[1]) for row in rows])
