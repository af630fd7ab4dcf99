"""Database operations for messages table."""

from nexus_oracle.core.schemas_oracle import Message
from nexus_oracle.db.supabase_client import get_supabase


def create_message(message: Message) -> dict:
    """Insert one message row (direct, team-scoped, or broadcast)."""
    supabase = get_supabase()
    row = message.model_dump(mode="json", exclude_none=True)
    result = supabase.table("messages").insert(row).execute()
    if not result.data:
        raise ValueError("No data returned from message insert")
    return result.data[0]
