"""Database operations for teams and team_status tables."""

from datetime import datetime, timezone

from nexus_oracle.db.supabase_client import get_supabase


def get_team(team_id: str) -> dict | None:
    """Get a team by id, or None if it does not exist."""
    supabase = get_supabase()
    result = supabase.table("teams").select("*").eq("id", team_id).limit(1).execute()
    rows = result.data or []
    return rows[0] if rows else None


def find_team_by_name(name: str) -> dict | None:
    """Case-insensitive exact-name lookup among active teams."""
    supabase = get_supabase()
    result = (
        supabase.table("teams")
        .select("*")
        .ilike("name", name.strip())
        .eq("archived", False)
        .limit(1)
        .execute()
    )
    rows = result.data or []
    return rows[0] if rows else None


def upsert_team_status(team_id: str, status_text: str) -> dict:
    """Replace the team's free-text status and refresh its timestamp."""
    supabase = get_supabase()
    row = {
        "team_id": team_id,
        "current_status": status_text,
        "last_update": datetime.now(timezone.utc).isoformat(),
    }
    result = supabase.table("team_status").upsert(row, on_conflict="team_id").execute()
    if not result.data:
        raise ValueError("No data returned from team_status upsert")
    return result.data[0]
