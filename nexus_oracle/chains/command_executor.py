"""Apply parsed intents against the data store.

Every handler validates first and writes last. Validation problems raise
``CommandValidationError`` before any store call; lookup misses, permission
denials and store failures come back as ``CommandResult(executed=True)`` with a
"❌" message so the user always gets readable feedback.
"""

from typing import Callable
from uuid import UUID

from nexus_oracle.chains.parse_intent import normalize_role
from nexus_oracle.core.config import get_settings
from nexus_oracle.core.errors import CommandValidationError
from nexus_oracle.core.logging import get_logger
from nexus_oracle.core.schemas_oracle import (
    ActionKind,
    BroadcastType,
    CommandResult,
    IntentDescriptor,
    Message,
    Role,
    UpdateType,
)
from nexus_oracle.db.members import assign_member_team, find_members_by_name
from nexus_oracle.db.messages import create_message
from nexus_oracle.db.teams import find_team_by_name, upsert_team_status
from nexus_oracle.db.updates import create_update

logger = get_logger(__name__)

ACTION_PERMISSIONS: dict[ActionKind, frozenset[Role]] = {
    ActionKind.BROADCAST: frozenset({Role.LEAD, Role.MENTOR}),
    ActionKind.ASSIGN_USER: frozenset({Role.LEAD}),
    ActionKind.CREATE_UPDATE: frozenset({Role.BUILDER, Role.MENTOR, Role.LEAD}),
    ActionKind.UPDATE_STATUS: frozenset({Role.BUILDER, Role.MENTOR, Role.LEAD}),
    ActionKind.SEND_MESSAGE: frozenset({Role.BUILDER, Role.MENTOR, Role.LEAD}),
}


def _result(action: ActionKind, message: str, data: dict | None = None) -> CommandResult:
    return CommandResult(executed=True, action=action, message=message, data=data)


def _require_text(value: str | None, field: str, label: str, max_chars: int) -> str:
    text = (value or "").strip()
    if not text:
        raise CommandValidationError(f"{label} is required", field=field)
    if len(text) > max_chars:
        raise CommandValidationError(f"{label} must be at most {max_chars} characters", field=field)
    return text


def _require_uuid(value: str, field: str) -> str:
    try:
        return str(UUID(str(value)))
    except ValueError as e:
        raise CommandValidationError(f"{field} must be a valid UUID", field=field) from e


def _denied(action: ActionKind, role: Role) -> CommandResult | None:
    if role not in ACTION_PERMISSIONS[action]:
        label = action.value.replace("_", " ")
        return _result(action, f"❌ The {role.value} role can't {label}.")
    return None


def execute(
    intent: IntentDescriptor | None,
    role: Role | str,
    team_id: str | None,
    user_id: str | None,
) -> CommandResult:
    """
    Execute one parsed intent.

    Args:
        intent: Parsed intent (None or action "none" is a no-op)
        role: Requester role
        team_id: Team in scope, if any
        user_id: Requester id, recorded as sender/creator

    Returns:
        CommandResult; ``executed`` is False only for the no-op

    Raises:
        CommandValidationError: Missing or oversized fields (nothing written)
    """
    if intent is None or intent.action == ActionKind.NONE:
        return CommandResult(executed=False, action=ActionKind.NONE, message="No action requested")

    role = Role(role)
    handler = _HANDLERS[intent.action]
    return handler(intent, role, team_id, user_id)


def _broadcast(intent: IntentDescriptor, role: Role, team_id: str | None, user_id: str | None) -> CommandResult:
    settings = get_settings()
    content = _require_text(intent.content, "content", "Broadcast content", settings.MAX_BROADCAST_CHARS)
    broadcast_type = intent.broadcast_type or BroadcastType.ALL

    target: str | None = None
    if broadcast_type == BroadcastType.TEAM:
        if not team_id:
            raise CommandValidationError("Team broadcasts require a teamId", field="team_id")
        target = team_id
    elif broadcast_type == BroadcastType.ROLE:
        target_role = normalize_role(intent.target_value)
        if target_role is None:
            raise CommandValidationError("Role broadcasts require a valid target role", field="target_value")
        target = target_role.value

    denied = _denied(ActionKind.BROADCAST, role)
    if denied:
        return denied

    message = Message(
        sender_id=user_id,
        sender_role=role,
        content=content,
        team_id=team_id if broadcast_type == BroadcastType.TEAM else None,
        is_broadcast=True,
        broadcast_type=broadcast_type,
        broadcast_target=target,
    )
    try:
        row = create_message(message)
    except Exception as e:
        logger.error(f"Broadcast failed: {e}")
        return _result(ActionKind.BROADCAST, f"❌ Failed to send broadcast: {e}")

    return _result(
        ActionKind.BROADCAST,
        f'✅ Broadcast sent: "{content}"',
        {"message_id": row.get("id"), "broadcast_type": broadcast_type.value},
    )


def _assign_user(intent: IntentDescriptor, role: Role, team_id: str | None, user_id: str | None) -> CommandResult:
    name = _require_text(intent.target_value, "target_value", "Member name", 200)
    target_team_id = _require_uuid(intent.team_id, "team_id") if intent.team_id else None

    denied = _denied(ActionKind.ASSIGN_USER, role)
    if denied:
        return denied

    try:
        candidates = find_members_by_name(name)
        if not candidates:
            return _result(ActionKind.ASSIGN_USER, f'❌ User not found: "{name}"')
        exact = [c for c in candidates if (c.get("name") or "").strip().lower() == name.lower()]
        member = (exact or candidates)[0]

        team_label = None
        if intent.team_name and not target_team_id:
            team = find_team_by_name(intent.team_name)
            if team is None:
                return _result(ActionKind.ASSIGN_USER, f'❌ Team not found: "{intent.team_name}"')
            target_team_id, team_label = team["id"], team.get("name")

        assign_member_team(member["id"], target_team_id)
    except Exception as e:
        logger.error(f"Assign user failed: {e}")
        return _result(ActionKind.ASSIGN_USER, f"❌ Failed to assign user: {e}")

    member_name = member.get("name", name)
    if target_team_id is None:
        text = f'✅ User "{member_name}" moved to unassigned section'
    else:
        text = f'✅ User "{member_name}" assigned to team {team_label or target_team_id}'
    return _result(ActionKind.ASSIGN_USER, text, {"member_id": member["id"], "team_id": target_team_id})


def _create_update(intent: IntentDescriptor, role: Role, team_id: str | None, user_id: str | None) -> CommandResult:
    if not team_id:
        return _result(ActionKind.CREATE_UPDATE, "❌ No team context provided for creating an update.")

    settings = get_settings()
    text = _require_text(intent.update_text, "update_text", "Update text", settings.MAX_UPDATE_CHARS)

    denied = _denied(ActionKind.CREATE_UPDATE, role)
    if denied:
        return denied

    try:
        row = create_update(team_id, text, created_by=user_id, update_type=UpdateType.DAILY.value)
    except Exception as e:
        logger.error(f"Create update failed: {e}")
        return _result(ActionKind.CREATE_UPDATE, f"❌ Failed to create update: {e}")

    return _result(ActionKind.CREATE_UPDATE, f'✅ Update created: "{text}"', {"update_id": row.get("id")})


def _update_status(intent: IntentDescriptor, role: Role, team_id: str | None, user_id: str | None) -> CommandResult:
    if not team_id:
        return _result(ActionKind.UPDATE_STATUS, "❌ No team context provided for updating status.")

    settings = get_settings()
    text = _require_text(intent.status_text, "status_text", "Status text", settings.MAX_STATUS_CHARS)

    denied = _denied(ActionKind.UPDATE_STATUS, role)
    if denied:
        return denied

    try:
        upsert_team_status(team_id, text)
    except Exception as e:
        logger.error(f"Update status failed: {e}")
        return _result(ActionKind.UPDATE_STATUS, f"❌ Failed to update status: {e}")

    return _result(ActionKind.UPDATE_STATUS, f'✅ Team status updated to: "{text}"', {"team_id": team_id})


def _send_message(intent: IntentDescriptor, role: Role, team_id: str | None, user_id: str | None) -> CommandResult:
    settings = get_settings()
    content = _require_text(intent.content, "content", "Message content", settings.MAX_BROADCAST_CHARS)

    receiver_role: Role | None = None
    if intent.target_type == "role":
        receiver_role = normalize_role(intent.target_value)
        if receiver_role is None:
            raise CommandValidationError("Messages to a role need a valid role", field="target_value")
    elif intent.target_type == "team":
        _require_text(intent.target_value, "target_value", "Team name", 200)
    else:
        raise CommandValidationError("Messages need a role or team target", field="target_type")

    denied = _denied(ActionKind.SEND_MESSAGE, role)
    if denied:
        return denied

    try:
        if receiver_role is not None:
            message = Message(
                sender_id=user_id,
                sender_role=role,
                receiver_role=receiver_role,
                content=content,
            )
            label = f"{receiver_role.value}s"
        else:
            team = find_team_by_name(intent.target_value)
            if team is None:
                return _result(ActionKind.SEND_MESSAGE, f'❌ Team not found: "{intent.target_value}"')
            message = Message(sender_id=user_id, sender_role=role, team_id=team["id"], content=content)
            label = f"team {team.get('name', intent.target_value)}"
        row = create_message(message)
    except Exception as e:
        logger.error(f"Send message failed: {e}")
        return _result(ActionKind.SEND_MESSAGE, f"❌ Failed to send message: {e}")

    return _result(ActionKind.SEND_MESSAGE, f"✅ Message sent to {label}: {content}", {"message_id": row.get("id")})


_HANDLERS: dict[
    ActionKind,
    Callable[[IntentDescriptor, Role, str | None, str | None], CommandResult],
] = {
    ActionKind.BROADCAST: _broadcast,
    ActionKind.ASSIGN_USER: _assign_user,
    ActionKind.CREATE_UPDATE: _create_update,
    ActionKind.UPDATE_STATUS: _update_status,
    ActionKind.SEND_MESSAGE: _send_message,
}
