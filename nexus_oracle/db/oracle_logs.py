"""Append-only Oracle interaction log."""

from typing import Any

from nexus_oracle.core.logging import get_logger
from nexus_oracle.db.supabase_client import get_supabase

logger = get_logger(__name__)


def log_oracle_interaction(
    query: str,
    response: str,
    user_role: str,
    sources_count: int,
    processing_time_ms: int,
    user_id: str | None = None,
    team_id: str | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    """Record one answered query for analytics. Fire-and-forget."""
    try:
        row: dict[str, Any] = {
            "query": query,
            "response": response,
            "user_role": user_role,
            "sources_count": sources_count,
            "processing_time_ms": processing_time_ms,
            "user_id": user_id,
            "team_id": team_id,
        }
        if extra:
            row.update(extra)
        get_supabase().table("oracle_logs").insert(row).execute()
    except Exception as e:
        # Analytics must never break the answer path
        logger.error(f"Failed to write oracle log: {e}")
