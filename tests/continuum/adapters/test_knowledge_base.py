"""Tests for KnowledgeBaseSearch."""

from unittest.mock import AsyncMock, MagicMock

from openai import APIConnectionError

from continuum.adapters.knowledge_base import KnowledgeBaseSearch, format_chunks


def _embedding_client(vector=(0.1, 0.2)):
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        return_value=MagicMock(data=[MagicMock(embedding=list(vector))])
    )
    return client


def test_format_chunks():
    text = format_chunks([("handbook.pdf", "Board duties"), ("faq.md", "Quorum is 5"), ("x", "")])
    assert text == "[Source: handbook.pdf]\nBoard duties\n\n---\n\n[Source: faq.md]\nQuorum is 5"


async def test_disabled_search_returns_empty(db):
    client = _embedding_client()
    kb = KnowledgeBaseSearch(client=client, enabled=False)
    assert await kb.search(db, "what is a quorum") == ""
    client.embeddings.create.assert_not_called()


async def test_search_calls_match_function():
    db = MagicMock()
    db.execute.return_value.all.return_value = [("faq.md", "Quorum is 5")]
    kb = KnowledgeBaseSearch(
        client=_embedding_client(), enabled=True, match_threshold=0.3, match_count=3
    )
    assert await kb.search(db, "what is a quorum") == "[Source: faq.md]\nQuorum is 5"
    params = db.execute.call_args.args[1]
    assert params["match_threshold"] == 0.3
    assert params["match_count"] == 3
    assert params["query_embedding"] == "[0.1, 0.2]"


async def test_store_without_match_function_returns_empty(db):
    """SQLite has no match_kb_chunks; the failure degrades to no context."""
    kb = KnowledgeBaseSearch(client=_embedding_client(), enabled=True)
    assert await kb.search(db, "what is a quorum") == ""


async def test_embedding_failure_returns_empty(db):
    client = MagicMock()
    client.embeddings.create = AsyncMock(side_effect=APIConnectionError(request=MagicMock()))
    kb = KnowledgeBaseSearch(client=client, enabled=True)
    assert await kb.search(db, "what is a quorum") == ""
