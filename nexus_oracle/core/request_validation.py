"""Validation for inbound Oracle requests.

Runs before any store or model access. Each failure raises
``OracleValidationError`` carrying the offending ``field``.
"""

from uuid import UUID

from pydantic import ValidationError

from nexus_oracle.core.config import get_settings
from nexus_oracle.core.errors import OracleValidationError
from nexus_oracle.core.schemas_oracle import (
    ContextRequest,
    OracleRequest,
    Role,
    UserProfile,
    ValidatedOracleRequest,
)

VALID_ROLES = {r.value for r in Role}


def _check_uuid(value: str | None, field: str) -> str | None:
    if value is None:
        return None
    try:
        UUID(str(value))
    except ValueError as e:
        raise OracleValidationError(f"{field} must be a valid UUID", field=field, code="invalid_uuid") from e
    return str(value)


def validate_oracle_request(request: OracleRequest) -> ValidatedOracleRequest:
    """
    Validate a raw Oracle request.

    Args:
        request: Loosely-typed inbound request

    Returns:
        ValidatedOracleRequest with typed role and profile

    Raises:
        OracleValidationError: On the first rule violated
    """
    settings = get_settings()

    raw_query = request.query or ""
    query = raw_query.strip()
    if not query:
        raise OracleValidationError("query is required", field="query", code="missing_field")
    if len(raw_query) > settings.MAX_QUERY_CHARS:
        raise OracleValidationError(
            f"query must be at most {settings.MAX_QUERY_CHARS} characters",
            field="query",
            code="query_too_long",
        )

    if not request.role:
        raise OracleValidationError("role is required", field="role", code="missing_field")
    if request.role not in VALID_ROLES:
        raise OracleValidationError(
            f"role must be one of: {', '.join(sorted(VALID_ROLES))}",
            field="role",
            code="invalid_role",
        )

    context_request = request.context_request or ContextRequest()
    if context_request.needs_team_context and not request.team_id:
        raise OracleValidationError(
            "teamId is required when needsTeamContext is set", field="teamId", code="missing_field"
        )
    if context_request.needs_personalization and not request.user_profile:
        raise OracleValidationError(
            "userProfile is required when needsPersonalization is set",
            field="userProfile",
            code="missing_field",
        )

    team_id = _check_uuid(request.team_id, "teamId")
    user_id = _check_uuid(request.user_id, "userId")

    profile = None
    if request.user_profile is not None:
        try:
            profile = UserProfile.model_validate(request.user_profile)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(p) for p in first["loc"]) or "userProfile"
            raise OracleValidationError(
                f"userProfile is invalid: {first['msg']}",
                field=f"userProfile.{location}",
                code="invalid_profile",
            ) from e

    return ValidatedOracleRequest(
        query=query,
        role=Role(request.role),
        team_id=team_id,
        user_id=user_id,
        profile=profile,
        context_request=context_request,
    )
