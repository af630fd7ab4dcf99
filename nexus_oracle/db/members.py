"""Database operations for members table."""

from nexus_oracle.db.supabase_client import get_supabase

MATCH_COLUMNS = "id, name, role, skills, help_needed, experience_level, team_id, bio"

# Characters that delimit PostgREST filter groups and cannot appear inside a value
_FILTER_UNSAFE = frozenset("{}()")


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def get_member_by_bridge_user(bridge_user_id: str) -> dict | None:
    """Find the member linked to a chat-platform account."""
    supabase = get_supabase()
    result = (
        supabase.table("members")
        .select("*")
        .eq("bridge_user_id", bridge_user_id)
        .limit(1)
        .execute()
    )
    rows = result.data or []
    return rows[0] if rows else None


def find_members_by_name(name: str, limit: int = 5) -> list[dict]:
    """Fuzzy (substring, case-insensitive) name lookup."""
    supabase = get_supabase()
    result = (
        supabase.table("members")
        .select(MATCH_COLUMNS)
        .ilike("name", f"%{name.strip()}%")
        .limit(limit)
        .execute()
    )
    return result.data or []


def find_members_by_topic(variants: list[str], limit: int = 5) -> list[dict]:
    """
    Find non-guest members whose skills or help-needed sets contain any variant.

    Args:
        variants: Spellings of one topic as stored in profile arrays
            (values containing filter delimiters are skipped)
        limit: Max rows returned

    Returns:
        Member rows
    """
    safe = [v for v in variants if v and not _FILTER_UNSAFE.intersection(v)]
    if not safe:
        return []

    supabase = get_supabase()
    values = ",".join(_quote(v) for v in safe)
    result = (
        supabase.table("members")
        .select(MATCH_COLUMNS)
        .or_(f"skills.ov.{{{values}}},help_needed.ov.{{{values}}}")
        .neq("role", "guest")
        .limit(limit)
        .execute()
    )
    return result.data or []


def list_team_members(team_id: str) -> list[dict]:
    supabase = get_supabase()
    result = (
        supabase.table("members")
        .select(MATCH_COLUMNS)
        .eq("team_id", team_id)
        .order("name")
        .execute()
    )
    return result.data or []


def assign_member_team(member_id: str, team_id: str | None) -> dict:
    """Set (or clear, with None) a member's team reference."""
    supabase = get_supabase()
    result = (
        supabase.table("members")
        .update({"team_id": team_id})
        .eq("id", member_id)
        .execute()
    )
    if not result.data:
        raise ValueError(f"No member updated for id {member_id}")
    return result.data[0]
