"""Assemble the role-scoped context block sent to the response generator."""

from collections import Counter

from nexus_oracle.context.role_views import view_for
from nexus_oracle.core.schemas_oracle import (
    CommandResult,
    Member,
    OracleResource,
    Role,
    StageAnalysis,
    Team,
    Update,
    UserProfile,
)
from nexus_oracle.core.stage_taxonomy import STAGE_INFO

DOCUMENT_EXCERPT_CHARS = 500


def assemble(
    role: Role | str,
    team: Team | None,
    updates: list[Update],
    profile: UserProfile | None,
    matched_people: list[Member],
    resources: list[OracleResource],
    *,
    roster: list[Member] | None = None,
    stage: StageAnalysis | None = None,
    command_result: CommandResult | None = None,
    documents: list[dict] | None = None,
) -> str:
    """
    Build the context string for one request.

    Every team, update, profile and people section is rendered by the
    requester's ``RoleView``; this function only orders and labels sections.

    Returns:
        Context text (may be empty when nothing is known)
    """
    view = view_for(role)
    sections: list[tuple[str, str]] = []

    if command_result is not None:
        sections.append(("ACTION RESULT", command_result.message))

    if stage is not None:
        info = STAGE_INFO[stage.stage]
        sections.append(
            (
                "LIFECYCLE STAGE",
                f"{info.title} ({stage.stage.value}, confidence {stage.confidence:.2f})\n"
                f"{info.description}\nTypical needs: {', '.join(info.support_needed)}",
            )
        )

    team_text = view.filter_team(team, roster or [], updates)
    if team_text:
        sections.append(("TEAM", team_text))

    updates_text = view.filter_updates(updates)
    if updates_text:
        sections.append(("RECENT UPDATES", updates_text))

    profile_text = view.filter_profile(profile)
    if profile_text:
        sections.append(("YOUR PROFILE", profile_text))

    people_lines = view.filter_people(matched_people)
    if people_lines:
        sections.append(("COMMUNITY MEMBERS WHO CAN HELP", "\n".join(people_lines)))

    resources_text = _render_resources(view.role, resources)
    if resources_text:
        sections.append(("RESOURCES", resources_text))

    if documents:
        excerpts = [
            f"- {doc.get('title') or 'Untitled'}: {(doc.get('content') or '')[:DOCUMENT_EXCERPT_CHARS]}"
            for doc in documents
        ]
        sections.append(("KNOWLEDGE BASE", "\n".join(excerpts)))

    return "\n\n".join(f"=== {title} ===\n{body}" for title, body in sections)


def _render_resources(role: Role, resources: list[OracleResource]) -> str | None:
    if not resources:
        return None
    if role == Role.GUEST:
        # Guests get shape only; titles can echo community skill names
        counts = Counter(r.type.value for r in resources)
        kinds = ", ".join(f"{n} {kind}" for kind, n in sorted(counts.items()))
        return f"{len(resources)} curated resources are attached to this answer ({kinds})."
    return "\n".join(f"- {r.title} ({r.type.value}): {r.url}" for r in resources)
