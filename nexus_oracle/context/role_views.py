"""Per-role visibility rules for Oracle context.

Each ``RoleView`` decides how much of the team, roster, updates, profile and
matched people a requester of that role may see. ``GuestView`` never touches
names, skills or profile fields: its methods only read stage, counts and types.
"""

import json
from abc import ABC, abstractmethod
from collections import Counter

from nexus_oracle.core.schemas_oracle import Member, Role, Team, Update, UserProfile

BUILDER_UPDATE_LIMIT = 2
BUILDER_UPDATE_CHARS = 200
MENTOR_UPDATE_LIMIT = 3


class RoleView(ABC):
    """Visibility strategy for one role. Each method returns rendered context text."""

    role: Role

    @abstractmethod
    def filter_team(self, team: Team | None, roster: list[Member], updates: list[Update]) -> str | None:
        ...

    @abstractmethod
    def filter_people(self, people: list[Member]) -> list[str]:
        ...

    @abstractmethod
    def filter_updates(self, updates: list[Update]) -> str | None:
        ...

    @abstractmethod
    def filter_profile(self, profile: UserProfile | None) -> str | None:
        ...

    def personalization(self, profile: UserProfile | None) -> dict | None:
        """Profile echo returned to the client alongside the answer."""
        if profile is None:
            return None
        return {
            "name": profile.name,
            "experience_level": profile.experience_level,
            "skills_considered": profile.skills[:3],
            "help_topics": profile.help_needed[:3],
        }


def _member_line(member: Member) -> str:
    skills = ", ".join(member.skills[:4]) or "no skills listed"
    return f"- {member.name} ({member.role.value}): {skills}"


def _profile_lines(profile: UserProfile) -> list[str]:
    lines = [f"Name: {profile.name}", f"Role: {profile.role.value}"]
    if profile.experience_level:
        lines.append(f"Experience: {profile.experience_level}")
    if profile.skills:
        lines.append(f"Skills: {', '.join(profile.skills)}")
    if profile.help_needed:
        lines.append(f"Needs help with: {', '.join(profile.help_needed)}")
    return lines


class GuestView(RoleView):
    role = Role.GUEST

    def filter_team(self, team: Team | None, roster: list[Member], updates: list[Update]) -> str | None:
        if team is None:
            return None
        return f"A cohort team in the {team.stage.value} stage with {len(updates)} recent updates."

    def filter_people(self, people: list[Member]) -> list[str]:
        return []

    def filter_updates(self, updates: list[Update]) -> str | None:
        if not updates:
            return None
        counts = Counter(u.type.value for u in updates)
        parts = [f"{n} {kind}" for kind, n in sorted(counts.items())]
        return f"Update activity: {', '.join(parts)}"

    def filter_profile(self, profile: UserProfile | None) -> str | None:
        return None

    def personalization(self, profile: UserProfile | None) -> dict | None:
        return None


class BuilderView(RoleView):
    role = Role.BUILDER

    def filter_team(self, team: Team | None, roster: list[Member], updates: list[Update]) -> str | None:
        if team is None:
            return None
        return f"Team: {team.name}\nStage: {team.stage.value}"

    def filter_people(self, people: list[Member]) -> list[str]:
        return [_member_line(m) for m in people]

    def filter_updates(self, updates: list[Update]) -> str | None:
        recent = updates[:BUILDER_UPDATE_LIMIT]
        if not recent:
            return None
        lines = []
        for update in recent:
            text = update.content
            if len(text) > BUILDER_UPDATE_CHARS:
                text = text[:BUILDER_UPDATE_CHARS].rstrip() + "..."
            lines.append(f"- {text}")
        return "\n".join(lines)

    def filter_profile(self, profile: UserProfile | None) -> str | None:
        if profile is None:
            return None
        return "\n".join(_profile_lines(profile))


class MentorView(RoleView):
    role = Role.MENTOR

    def filter_team(self, team: Team | None, roster: list[Member], updates: list[Update]) -> str | None:
        if team is None:
            return None
        lines = [
            f"Team: {team.name}",
            f"Stage: {team.stage.value}",
            f"Description: {team.description or 'n/a'}",
            f"Tags: {', '.join(team.tags) or 'none'}",
            f"Assigned mentor: {team.mentor_id or 'unassigned'}",
        ]
        if roster:
            lines.append("Roster:")
            lines.extend(_member_line(m) for m in roster)
        return "\n".join(lines)

    def filter_people(self, people: list[Member]) -> list[str]:
        return [_member_line(m) for m in people]

    def filter_updates(self, updates: list[Update]) -> str | None:
        recent = updates[:MENTOR_UPDATE_LIMIT]
        if not recent:
            return None
        lines = []
        for update in recent:
            when = update.created_at.date().isoformat() if update.created_at else "undated"
            lines.append(f"- [{update.type.value}, {when}] {update.content}")
        return "\n".join(lines)

    def filter_profile(self, profile: UserProfile | None) -> str | None:
        if profile is None:
            return None
        lines = _profile_lines(profile)
        if profile.bio:
            lines.append(f"Bio: {profile.bio}")
        return "\n".join(lines)


class LeadView(RoleView):
    role = Role.LEAD

    def filter_team(self, team: Team | None, roster: list[Member], updates: list[Update]) -> str | None:
        if team is None:
            return None
        record = team.model_dump(mode="json")
        text = f"Team record: {json.dumps(record, sort_keys=True, default=str)}"
        if roster:
            members = [m.model_dump(mode="json") for m in roster]
            text += f"\nRoster records: {json.dumps(members, sort_keys=True, default=str)}"
        return text

    def filter_people(self, people: list[Member]) -> list[str]:
        return [_member_line(m) for m in people]

    def filter_updates(self, updates: list[Update]) -> str | None:
        if not updates:
            return None
        records = [u.model_dump(mode="json") for u in updates]
        return json.dumps(records, sort_keys=True, default=str)

    def filter_profile(self, profile: UserProfile | None) -> str | None:
        if profile is None:
            return None
        return json.dumps(profile.model_dump(mode="json"), sort_keys=True, default=str)


ROLE_VIEWS: dict[Role, RoleView] = {
    Role.GUEST: GuestView(),
    Role.BUILDER: BuilderView(),
    Role.MENTOR: MentorView(),
    Role.LEAD: LeadView(),
}


def view_for(role: Role | str) -> RoleView:
    return ROLE_VIEWS[Role(role)]
