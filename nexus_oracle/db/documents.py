"""Knowledge-base document lookup (pass-through to the match_documents RPC)."""

from nexus_oracle.db.supabase_client import get_supabase


def match_documents(
    query_embedding: list[float],
    role: str,
    match_count: int = 5,
    match_threshold: float = 0.7,
) -> list[dict]:
    """
    Vector-search documents visible to ``role``.

    Returns:
        Rows with id, title, content, similarity
    """
    supabase = get_supabase()
    result = supabase.rpc(
        "match_documents",
        {
            "query_embedding": query_embedding,
            "match_threshold": match_threshold,
            "match_count": match_count,
            "filter_role": role,
        },
    ).execute()
    return result.data or []
