"""Database operations for updates table."""

from nexus_oracle.db.supabase_client import get_supabase


def list_recent_updates(team_id: str, limit: int = 5) -> list[dict]:
    """List a team's updates, newest first."""
    supabase = get_supabase()
    result = (
        supabase.table("updates")
        .select("*")
        .eq("team_id", team_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return result.data or []


def create_update(
    team_id: str,
    content: str,
    created_by: str | None = None,
    update_type: str = "daily",
) -> dict:
    """Insert a single team update."""
    supabase = get_supabase()
    row = {
        "team_id": team_id,
        "content": content,
        "type": update_type,
    }
    if created_by:
        row["created_by"] = created_by

    result = supabase.table("updates").insert(row).execute()
    if not result.data:
        raise ValueError("No data returned from update insert")
    return result.data[0]
