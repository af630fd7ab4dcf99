"""Chat-platform bridge.

Mirrors the Oracle command vocabulary for slash commands issued from the
community chat server. Requests are signed with HMAC-SHA256 over
``timestamp + body`` using ``BRIDGE_SIGNING_SECRET``.

Interaction types:
    1 -> ping, answered with type 1
    2 -> slash command, answered with a type 4 channel message
"""

import hashlib
import hmac
import json
import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from nexus_oracle.chains.command_executor import execute
from nexus_oracle.chains.parse_intent import parse_slash_command
from nexus_oracle.context import stage_classifier
from nexus_oracle.core.config import get_settings
from nexus_oracle.core.errors import CommandValidationError
from nexus_oracle.core.logging import get_logger
from nexus_oracle.core.schemas_oracle import (
    ContextRequest,
    Role,
    Team,
    Update,
    UserProfile,
    ValidatedOracleRequest,
)
from nexus_oracle.core.stage_taxonomy import STAGE_INFO, frameworks_for, next_actions_for
from nexus_oracle.db.members import get_member_by_bridge_user
from nexus_oracle.db.teams import get_team
from nexus_oracle.db.updates import list_recent_updates
from nexus_oracle.graphs.oracle_pipeline import OraclePipeline, get_oracle_pipeline, parse_rows

logger = get_logger(__name__)

router = APIRouter(prefix="/bridge")

PING = 1
APPLICATION_COMMAND = 2
RESPONSE_PONG = 1
RESPONSE_MESSAGE = 4
EPHEMERAL_FLAG = 64

ACTION_COMMANDS = ("broadcast", "message", "update", "status", "assign")

HELP_TEXT = (
    "Available commands:\n"
    "/broadcast [team | role <role>] <message>\n"
    "/message <role>: <message>  or  /message team <name>: <message>\n"
    "/update <text>\n"
    "/status <text>\n"
    "/assign <name> [to <team>]\n"
    "/journey  (your team's stage and next steps)\n"
    "/oracle <question>"
)


def verify_signature(secret: str, timestamp: str, body: bytes, signature: str, max_skew: int) -> bool:
    """Check an HMAC-SHA256 signature and reject stale timestamps."""
    try:
        sent_at = int(timestamp)
    except (TypeError, ValueError):
        return False
    if abs(time.time() - sent_at) > max_skew:
        return False

    expected = hmac.new(secret.encode(), timestamp.encode() + body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature, expected)


def _message(content: str, ephemeral: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {"content": content}
    if ephemeral:
        data["flags"] = EPHEMERAL_FLAG
    return {"type": RESPONSE_MESSAGE, "data": data}


def _member_role(member: dict) -> Role:
    """Stored role of a linked member; anything unrecognised is treated as guest."""
    try:
        return Role(member.get("role"))
    except ValueError:
        return Role.GUEST


def _command_text(data: dict[str, Any]) -> tuple[str, str]:
    """Rebuild '/name arg...' from a structured command payload."""
    name = (data.get("name") or "").lower()
    values = [str(opt.get("value", "")).strip() for opt in data.get("options") or []]
    return name, f"/{name} {' '.join(v for v in values if v)}".strip()


@router.post("/interactions")
async def handle_interaction(
    request: Request,
    pipeline: OraclePipeline = Depends(get_oracle_pipeline),
) -> dict[str, Any]:
    settings = get_settings()
    if not settings.BRIDGE_SIGNING_SECRET:
        raise HTTPException(status_code=503, detail="Bridge is not configured")

    body_bytes = await request.body()
    signature = request.headers.get("x-signature", "")
    timestamp = request.headers.get("x-signature-timestamp", "")
    if not verify_signature(
        settings.BRIDGE_SIGNING_SECRET,
        timestamp,
        body_bytes,
        signature,
        settings.BRIDGE_MAX_SKEW_SECONDS,
    ):
        logger.warning("Bridge request rejected: invalid signature")
        raise HTTPException(status_code=401, detail="Invalid request signature")

    try:
        payload = json.loads(body_bytes)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail="Body is not valid JSON") from e

    interaction_type = payload.get("type")
    if interaction_type == PING:
        return {"type": RESPONSE_PONG}
    if interaction_type != APPLICATION_COMMAND:
        raise HTTPException(status_code=400, detail=f"Unsupported interaction type: {interaction_type}")

    name, text = _command_text(payload.get("data") or {})
    bridge_user_id = str((payload.get("user") or {}).get("id") or "")
    member = get_member_by_bridge_user(bridge_user_id) if bridge_user_id else None

    if name == "help":
        return _message(HELP_TEXT, ephemeral=True)

    if name == "oracle":
        return await _ask_oracle(pipeline, text, member)

    if name == "journey":
        return _journey(member)

    if name not in ACTION_COMMANDS:
        return _message(f"❌ Unknown command: /{name}", ephemeral=True)

    if member is None:
        return _message("❌ Link your community account before running commands.", ephemeral=True)

    intent = parse_slash_command(text)
    if intent is None:
        return _message(f"❌ Could not understand /{name}. Try /help.", ephemeral=True)

    try:
        result = execute(intent, _member_role(member), member.get("team_id"), member["id"])
    except CommandValidationError as e:
        return _message(f"❌ {e.message}", ephemeral=True)

    logger.info(f"Bridge command /{name} by member {member['id']}: {result.message}")
    return _message(result.message)


async def _ask_oracle(pipeline: OraclePipeline, text: str, member: dict | None) -> dict[str, Any]:
    question = text.removeprefix("/oracle").strip()
    if not question:
        return _message("❌ Ask a question after /oracle.", ephemeral=True)
    question = question[: get_settings().MAX_QUERY_CHARS]

    if member is None:
        request = ValidatedOracleRequest(query=question, role=Role.GUEST)
    else:
        profile = UserProfile.model_validate(
            {
                "id": member["id"],
                "name": member.get("name") or "member",
                "role": _member_role(member),
                "skills": member.get("skills") or [],
                "help_needed": member.get("help_needed") or [],
                "experience_level": member.get("experience_level"),
                "team_id": member.get("team_id"),
            }
        )
        request = ValidatedOracleRequest(
            query=question,
            role=profile.role,
            team_id=member.get("team_id"),
            user_id=member["id"],
            profile=profile,
            context_request=ContextRequest(),
        )

    response = await pipeline.run(request)
    return _message(response.answer)


def _journey(member: dict | None) -> dict[str, Any]:
    """Render the linked member's team stage guide from the shared stage taxonomy."""
    if member is None:
        return _message("❌ Link your community account to see your team's journey.", ephemeral=True)
    team_id = member.get("team_id")
    team_row = get_team(team_id) if team_id else None
    if team_row is None:
        return _message("❌ You're not on a team yet. Ask a lead to /assign you.", ephemeral=True)

    team = Team.model_validate(team_row)
    updates = parse_rows(Update, list_recent_updates(team_id))
    analysis = stage_classifier.classify(updates, team, "")
    info = STAGE_INFO[analysis.stage]

    lines = [
        f"🧭 {team.name}: {info.title} ({analysis.stage.value}, confidence {analysis.confidence:.2f})",
        info.description,
        "",
        "Next steps:",
        *(f"- {action}" for action in next_actions_for(analysis.stage)),
        "",
        f"Frameworks: {', '.join(frameworks_for(analysis.stage))}",
    ]
    return _message("\n".join(lines), ephemeral=True)
