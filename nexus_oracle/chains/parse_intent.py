"""Translate free text into an action descriptor.

Slash commands (``/broadcast``, ``/message``, ``/update``, ``/status``,
``/assign``) are parsed deterministically. Everything else goes to the
language model with a strict JSON instruction and is decoded against
``IntentDescriptor``. Any failure yields ``None``: the caller treats that
exactly like ``action == "none"`` and answers the text as a question.
"""

import re

from nexus_oracle.core.config import get_settings
from nexus_oracle.core.errors import LLMError
from nexus_oracle.core.llm import LLMOutputError, OracleLLM, decode_llm_json
from nexus_oracle.core.logging import get_logger
from nexus_oracle.core.schemas_oracle import ActionKind, BroadcastType, IntentDescriptor, Role

logger = get_logger(__name__)

INTENT_SYSTEM = """You convert messages from a startup-incubator community platform into commands.

Respond with exactly one JSON object and nothing else:
{
  "action": "send_message" | "create_update" | "update_status" | "assign_user" | "broadcast" | "none",
  "target_type": "role" | "team" | "user" | null,
  "target_value": string | null,
  "content": string | null,
  "update_text": string | null,
  "status_text": string | null,
  "team_name": string | null,
  "broadcast_type": "all" | "team" | "role" | null
}

Field use per action:
- send_message: target_type ("role" or "team"), target_value (role name or team name), content
- create_update: update_text
- update_status: status_text
- assign_user: target_value (person's name), team_name (null to unassign)
- broadcast: content, broadcast_type (default "all"), target_value (role name when broadcast_type is "role")
- none: every other field null

Use "none" for questions, greetings, requests for advice or anything that is not an explicit instruction to do one of the actions above.

Examples:
"Send a message to all mentors saying we need help with the pitch deck" -> {"action": "send_message", "target_type": "role", "target_value": "mentor", "content": "We need help with the pitch deck"}
"Post an update: finished the login flow" -> {"action": "create_update", "update_text": "Finished the login flow"}
"Set our status to heads-down on user testing" -> {"action": "update_status", "status_text": "Heads-down on user testing"}
"Move Jordan to team Atlas" -> {"action": "assign_user", "target_value": "Jordan", "team_name": "Atlas"}
"Broadcast that we hit 50% progress" -> {"action": "broadcast", "content": "We hit 50% progress", "broadcast_type": "all"}
"How do I validate my idea?" -> {"action": "none"}"""

SLASH_COMMANDS = ("broadcast", "message", "update", "status", "assign")

_ROLE_ALIASES: dict[str, Role] = {}
for _role in Role:
    _ROLE_ALIASES[_role.value] = _role
    _ROLE_ALIASES[f"{_role.value}s"] = _role


def normalize_role(value: str | None) -> Role | None:
    """Map 'mentor', 'Mentors', 'leads' etc. to a Role."""
    if not value:
        return None
    return _ROLE_ALIASES.get(value.strip().lower())


def is_slash_command(text: str) -> bool:
    return (text or "").lstrip().startswith("/")


def parse_slash_command(text: str) -> IntentDescriptor | None:
    """
    Parse a slash command into an intent.

    Grammar:
        /broadcast [team | role <role>] <content>
        /message <role>: <content>  |  /message team <name>: <content>
        /update <text>
        /status <text>
        /assign <name> [to <team name>]

    Returns:
        IntentDescriptor, or None for unknown commands or missing arguments
    """
    match = re.match(r"^\s*/(\w+)\s*(.*)$", text or "", re.DOTALL)
    if not match:
        return None
    command, rest = match.group(1).lower(), match.group(2).strip()
    if command not in SLASH_COMMANDS or not rest:
        return None

    if command == "broadcast":
        words = rest.split(maxsplit=2)
        scope = words[0].lower()
        if (scope == "team" and len(words) < 2) or (scope == "role" and len(words) < 3):
            return None
        if scope == "team":
            return IntentDescriptor(
                action=ActionKind.BROADCAST,
                broadcast_type=BroadcastType.TEAM,
                content=rest.split(maxsplit=1)[1],
            )
        if scope == "role":
            return IntentDescriptor(
                action=ActionKind.BROADCAST,
                broadcast_type=BroadcastType.ROLE,
                target_value=words[1],
                content=words[2],
            )
        return IntentDescriptor(
            action=ActionKind.BROADCAST, broadcast_type=BroadcastType.ALL, content=rest
        )

    if command == "message":
        target, sep, content = rest.partition(":")
        if not sep or not content.strip():
            return None
        target = target.strip()
        if target.lower().startswith("team "):
            return IntentDescriptor(
                action=ActionKind.SEND_MESSAGE,
                target_type="team",
                target_value=target[5:].strip(),
                content=content.strip(),
            )
        return IntentDescriptor(
            action=ActionKind.SEND_MESSAGE,
            target_type="role",
            target_value=target,
            content=content.strip(),
        )

    if command == "update":
        return IntentDescriptor(action=ActionKind.CREATE_UPDATE, update_text=rest)

    if command == "status":
        return IntentDescriptor(action=ActionKind.UPDATE_STATUS, status_text=rest)

    # assign
    name, sep, team_name = rest.partition(" to ")
    return IntentDescriptor(
        action=ActionKind.ASSIGN_USER,
        target_value=name.strip(),
        team_name=team_name.strip() if sep and team_name.strip() else None,
    )


async def parse_intent(
    raw_text: str,
    llm: OracleLLM,
    user_id: str | None = None,
    team_id: str | None = None,
) -> IntentDescriptor | None:
    """
    Parse raw text into an IntentDescriptor.

    Args:
        raw_text: The user's message
        llm: Language-model client
        user_id: Requester id (usage attribution only)
        team_id: Team id (usage attribution only)

    Returns:
        IntentDescriptor, or None when nothing could be parsed. Never raises
        for LLM or decode failures.
    """
    if not raw_text or not raw_text.strip():
        return None

    if is_slash_command(raw_text):
        return parse_slash_command(raw_text)

    settings = get_settings()
    try:
        completion = await llm.complete_chat(
            INTENT_SYSTEM,
            raw_text,
            model=settings.INTENT_MODEL,
            temperature=0,
            max_tokens=settings.INTENT_MAX_TOKENS,
            workflow="parse_intent",
            json_mode=True,
            user_id=user_id,
            team_id=team_id,
        )
    except LLMError as e:
        logger.warning(f"Intent parsing skipped, LLM unavailable: {e.kind.value}")
        return None

    try:
        intent = decode_llm_json(completion.text, IntentDescriptor)
    except LLMOutputError as e:
        logger.warning(f"Rejected non-conforming intent output: {e}")
        return None

    logger.info(f"Parsed intent: {intent.action.value}")
    return intent
