"""Find community members who can help with what the query is about."""

import re

from pydantic import ValidationError

from nexus_oracle.core.logging import get_logger
from nexus_oracle.core.schemas_oracle import Member, Role, UserProfile
from nexus_oracle.db.members import find_members_by_topic

logger = get_logger(__name__)

MAX_MATCHES = 5

# Canonical topic -> spellings as they appear in profile arrays
TECH_VOCABULARY: dict[str, tuple[str, ...]] = {
    "react": ("React", "react", "React.js", "ReactJS"),
    "javascript": ("JavaScript", "javascript", "JS"),
    "typescript": ("TypeScript", "typescript", "TS"),
    "python": ("Python", "python"),
    "node": ("Node.js", "Node", "node", "nodejs"),
    "design": ("Design", "design", "UI/UX", "UX", "UI"),
    "figma": ("Figma", "figma"),
    "database": ("Database", "database", "SQL", "Postgres", "PostgreSQL"),
    "supabase": ("Supabase", "supabase"),
    "api": ("API", "APIs", "api", "REST"),
    "mobile": ("Mobile", "mobile", "iOS", "Android", "React Native"),
    "marketing": ("Marketing", "marketing", "Growth Marketing"),
    "sales": ("Sales", "sales"),
    "fundraising": ("Fundraising", "fundraising"),
    "product": ("Product", "Product Management", "product"),
    "ai": ("AI", "ai", "Machine Learning", "ML", "LLM"),
    "devops": ("DevOps", "devops", "Deployment", "CI/CD"),
}

HELP_SEEKING_TERMS = ("help", "stuck", "guidance", "struggling", "advice")

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9.+#/-]*")


def extract_topics(query: str) -> list[str]:
    """Vocabulary topics named in the query, in vocabulary order."""
    tokens = {t.strip(".") for t in _TOKEN_RE.findall((query or "").lower())}
    topics = []
    for topic, spellings in TECH_VOCABULARY.items():
        if topic in tokens or any(s.lower() in tokens for s in spellings):
            topics.append(topic)
    return topics


def is_help_seeking(query: str) -> bool:
    lowered = (query or "").lower()
    return any(term in lowered for term in HELP_SEEKING_TERMS)


def match(query: str, profile: UserProfile | None, role: Role | str) -> list[Member]:
    """
    Find members whose skills or help-needed topics overlap the query.

    Guests never see other members: the check happens before any lookup.

    Args:
        query: User query
        profile: Requester profile; its help-needed topics widen the search
            when the query asks for help
        role: Requester role

    Returns:
        Up to ``MAX_MATCHES`` members, deduplicated by display name
    """
    if Role(role) == Role.GUEST:
        return []

    searches = [list(TECH_VOCABULARY[topic]) for topic in extract_topics(query)]
    if profile is not None and is_help_seeking(query):
        for topic in profile.help_needed:
            topic = topic.strip()
            if topic:
                searches.append(sorted({topic, topic.lower(), topic.title()}))

    matches: list[Member] = []
    seen_names: set[str] = set()
    for variants in searches:
        try:
            found = find_members_by_topic(variants, limit=MAX_MATCHES)
        except Exception as e:
            logger.warning(f"Member lookup failed for topic {variants[0]!r}: {e}")
            continue
        for row in found:
            try:
                member = Member.model_validate(row)
            except ValidationError as e:
                logger.warning(f"Skipping malformed member row {row.get('id')}: {e.error_count()} errors")
                continue
            if profile is not None and member.id == profile.id:
                continue
            key = member.name.strip().lower()
            if key in seen_names:
                continue
            seen_names.add(key)
            matches.append(member)
            if len(matches) == MAX_MATCHES:
                return matches

    return matches
