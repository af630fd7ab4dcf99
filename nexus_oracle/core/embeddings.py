"""OpenAI query embeddings for the knowledge-base lookup."""

import asyncio

from openai import OpenAI

from nexus_oracle.core.config import get_settings
from nexus_oracle.core.logging import get_logger

logger = get_logger(__name__)


def _get_client() -> OpenAI:
    settings = get_settings()
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def embed_query(text: str) -> list[float]:
    """
    Embed a single query string.

    Raises:
        ValueError: If the embedding dimension doesn't match EMBEDDING_DIM
    """
    settings = get_settings()
    response = _get_client().embeddings.create(model=settings.EMBEDDING_MODEL, input=[text])
    embedding = response.data[0].embedding

    if len(embedding) != settings.EMBEDDING_DIM:
        raise ValueError(
            f"Embedding dimension mismatch: expected {settings.EMBEDDING_DIM}, got {len(embedding)}"
        )

    logger.debug(f"Embedded query using {settings.EMBEDDING_MODEL}")
    return embedding


async def embed_query_async(text: str) -> list[float]:
    """Async wrapper around embed_query using thread pool."""
    return await asyncio.to_thread(embed_query, text)
