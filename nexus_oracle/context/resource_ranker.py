"""Deterministic resource ranking.

Candidates come from four independent rule sets and are merged into one list:

1. help-needed topic mentioned in the query -> focused tutorial (0.98)
2. the user's top skill mentioned in the query -> advanced resource (0.95)
3. canned picks for the team's stage, some role-gated (0.90-0.96)
4. technology keyword table (0.87-0.94)

The merged list is stable-sorted by relevance (insertion order breaks ties),
deduplicated by URL and truncated to ``MAX_RESOURCES``.
"""

from dataclasses import dataclass
from urllib.parse import quote_plus

from nexus_oracle.core.schemas_oracle import (
    OracleResource,
    ResourceType,
    Role,
    Stage,
    UserProfile,
)

MAX_RESOURCES = 6

HELP_TOPIC_RELEVANCE = 0.98
TOP_SKILL_RELEVANCE = 0.95

BUILD_ROLES = frozenset({Role.BUILDER, Role.LEAD})
LEADERSHIP_ROLES = frozenset({Role.MENTOR, Role.LEAD})


@dataclass(frozen=True)
class CannedResource:
    title: str
    url: str
    type: ResourceType
    description: str
    relevance: float
    roles: frozenset[Role] | None = None  # None = every role

    def to_resource(self) -> OracleResource:
        return OracleResource(
            title=self.title,
            url=self.url,
            type=self.type,
            description=self.description,
            relevance=self.relevance,
        )


STAGE_RESOURCES: dict[Stage, tuple[CannedResource, ...]] = {
    Stage.IDEATION: (
        CannedResource(
            "The Mom Test: talking to customers",
            "https://www.momtestbook.com/",
            ResourceType.ARTICLE,
            "How to run customer conversations that produce honest signal",
            0.96,
        ),
        CannedResource(
            "Lean Canvas walkthrough",
            "https://leanstack.com/lean-canvas",
            ResourceType.TOOL,
            "One-page template for stating problem, segment and solution",
            0.93,
        ),
        CannedResource(
            "YC Startup School: How to Get Startup Ideas",
            "https://www.startupschool.org/",
            ResourceType.TUTORIAL,
            "Free course on finding and evaluating startup ideas",
            0.91,
        ),
        CannedResource(
            "Coaching founders through problem discovery",
            "https://review.firstround.com/",
            ResourceType.ARTICLE,
            "Questions mentors use to pressure-test a problem statement",
            0.90,
            LEADERSHIP_ROLES,
        ),
    ),
    Stage.DEVELOPMENT: (
        CannedResource(
            "Shipping your MVP: deployment checklist",
            "https://vercel.com/docs/deployments/overview",
            ResourceType.DOCUMENTATION,
            "Getting an MVP deployed with previews and rollbacks",
            0.96,
        ),
        CannedResource(
            "Building an MVP that proves one thing",
            "https://www.ycombinator.com/library/6f-how-to-plan-an-mvp",
            ResourceType.ARTICLE,
            "Scoping the smallest product that tests your riskiest assumption",
            0.93,
            BUILD_ROLES,
        ),
        CannedResource(
            "Running effective engineering sprints",
            "https://www.atlassian.com/agile/scrum/sprints",
            ResourceType.TUTORIAL,
            "Sprint planning and review for small teams",
            0.90,
            LEADERSHIP_ROLES,
        ),
    ),
    Stage.TESTING: (
        CannedResource(
            "Usability testing 101",
            "https://www.nngroup.com/articles/usability-testing-101/",
            ResourceType.ARTICLE,
            "Planning and running lightweight user tests",
            0.95,
        ),
        CannedResource(
            "Product analytics quickstart",
            "https://posthog.com/docs/getting-started",
            ResourceType.TOOL,
            "Instrumenting events and funnels in an afternoon",
            0.92,
            BUILD_ROLES,
        ),
        CannedResource(
            "Giving feedback founders can act on",
            "https://www.radicalcandor.com/",
            ResourceType.ARTICLE,
            "Framing critique so teams iterate instead of defend",
            0.90,
            LEADERSHIP_ROLES,
        ),
    ),
    Stage.LAUNCH: (
        CannedResource(
            "Launching on Product Hunt",
            "https://www.producthunt.com/launch",
            ResourceType.TUTORIAL,
            "Preparing assets and timing for a public launch",
            0.95,
        ),
        CannedResource(
            "Traction: the Bullseye framework",
            "https://www.tractionbook.com/",
            ResourceType.ARTICLE,
            "Choosing acquisition channels to test first",
            0.93,
        ),
        CannedResource(
            "Leading a launch retrospective",
            "https://www.atlassian.com/team-playbook/plays/retrospective",
            ResourceType.TUTORIAL,
            "Structured retro for the week after launch",
            0.90,
            LEADERSHIP_ROLES,
        ),
    ),
    Stage.GROWTH: (
        CannedResource(
            "Growth loops are the new funnels",
            "https://www.reforge.com/blog/growth-loops",
            ResourceType.ARTICLE,
            "Modelling compounding acquisition instead of linear funnels",
            0.95,
        ),
        CannedResource(
            "Scaling infrastructure on a budget",
            "https://supabase.com/docs/guides/platform/performance",
            ResourceType.DOCUMENTATION,
            "Database and hosting changes that buy the next 10x",
            0.92,
            BUILD_ROLES,
        ),
        CannedResource(
            "Hiring your first team",
            "https://www.ycombinator.com/library/4n-hiring-your-first-employees",
            ResourceType.ARTICLE,
            "When and how to make the first key hires",
            0.91,
            LEADERSHIP_ROLES,
        ),
    ),
}

# Technology term -> resource. Terms are matched as lowercase substrings of the query.
KEYWORD_RESOURCES: dict[str, CannedResource] = {
    "react": CannedResource(
        "React Documentation",
        "https://react.dev/",
        ResourceType.DOCUMENTATION,
        "Official React documentation with tutorials and API reference",
        0.92,
    ),
    "javascript": CannedResource(
        "The Modern JavaScript Tutorial",
        "https://javascript.info/",
        ResourceType.TUTORIAL,
        "From the basics to advanced topics with simple explanations",
        0.90,
    ),
    "typescript": CannedResource(
        "TypeScript Handbook",
        "https://www.typescriptlang.org/docs/handbook/intro.html",
        ResourceType.DOCUMENTATION,
        "Official guide to the TypeScript type system",
        0.90,
    ),
    "python": CannedResource(
        "The Python Tutorial",
        "https://docs.python.org/3/tutorial/",
        ResourceType.DOCUMENTATION,
        "Official Python tutorial",
        0.89,
    ),
    "node": CannedResource(
        "Node.js Learn",
        "https://nodejs.org/en/learn",
        ResourceType.DOCUMENTATION,
        "Official Node.js guides",
        0.89,
    ),
    "deploy": CannedResource(
        "Deploying web apps: a practical guide",
        "https://docs.netlify.com/site-deploys/overview/",
        ResourceType.DOCUMENTATION,
        "Build settings, environments and deploy previews",
        0.91,
    ),
    "supabase": CannedResource(
        "Supabase Docs",
        "https://supabase.com/docs",
        ResourceType.DOCUMENTATION,
        "Postgres, auth, storage and edge functions",
        0.90,
    ),
    "database": CannedResource(
        "SQL tutorial for developers",
        "https://www.postgresqltutorial.com/",
        ResourceType.TUTORIAL,
        "Practical PostgreSQL from queries to indexes",
        0.87,
    ),
    "figma": CannedResource(
        "Figma Learn",
        "https://help.figma.com/hc/en-us/categories/360002051613",
        ResourceType.TUTORIAL,
        "Free design courses and tutorials from Figma",
        0.88,
    ),
    "design": CannedResource(
        "Material Design",
        "https://m3.material.io/",
        ResourceType.DOCUMENTATION,
        "Google's design system and guidelines",
        0.87,
    ),
    "pitch": CannedResource(
        "How to pitch your startup",
        "https://www.ycombinator.com/library/4b-how-to-pitch-your-company",
        ResourceType.YOUTUBE,
        "Structuring a clear, short investor pitch",
        0.94,
    ),
    "fundrais": CannedResource(
        "A guide to seed fundraising",
        "https://www.ycombinator.com/library/4A-a-guide-to-seed-fundraising",
        ResourceType.ARTICLE,
        "Mechanics of a seed round for first-time founders",
        0.93,
    ),
    "machine learning": CannedResource(
        "Practical Deep Learning for Coders",
        "https://course.fast.ai/",
        ResourceType.TUTORIAL,
        "Hands-on machine learning course",
        0.89,
    ),
}

# Deeper references for skills a user already has
ADVANCED_SKILL_RESOURCES: dict[str, tuple[str, str]] = {
    "react": ("Advanced React Patterns", "https://react.dev/learn/reusing-logic-with-custom-hooks"),
    "javascript": ("You Don't Know JS Yet", "https://github.com/getify/You-Dont-Know-JS"),
    "typescript": ("Type-Level TypeScript", "https://type-level-typescript.com/"),
    "python": ("Fluent Python patterns", "https://docs.python.org/3/howto/index.html"),
    "node": ("Node.js Best Practices", "https://github.com/goldbergyoni/nodebestpractices"),
}


def rank(
    query: str,
    profile: UserProfile | None,
    team_stage: Stage | None,
    role: Role = Role.BUILDER,
) -> list[OracleResource]:
    """
    Rank learning resources for a query.

    Args:
        query: User query
        profile: Requester profile (help-needed topics and skills), if known
        team_stage: Detected or persisted team stage
        role: Requester role, gates some stage picks

    Returns:
        At most ``MAX_RESOURCES`` resources, sorted by relevance descending
    """
    lowered = (query or "").lower()
    candidates: list[OracleResource] = []

    if profile is not None:
        candidates.extend(_help_topic_resources(lowered, profile))
        top_skill = _top_skill_resource(lowered, profile)
        if top_skill is not None:
            candidates.append(top_skill)

    if team_stage is not None:
        for canned in STAGE_RESOURCES[team_stage]:
            if canned.roles is None or role in canned.roles:
                candidates.append(canned.to_resource())

    for term, canned in KEYWORD_RESOURCES.items():
        if term in lowered:
            candidates.append(canned.to_resource())

    # sorted() is stable: equal scores keep rule order
    ordered = sorted(candidates, key=lambda r: r.relevance, reverse=True)

    seen_urls: set[str] = set()
    result: list[OracleResource] = []
    for resource in ordered:
        if resource.url in seen_urls:
            continue
        seen_urls.add(resource.url)
        result.append(resource)
        if len(result) == MAX_RESOURCES:
            break
    return result


def _help_topic_resources(lowered_query: str, profile: UserProfile) -> list[OracleResource]:
    resources = []
    for topic in profile.help_needed:
        topic = topic.strip()
        if topic and topic.lower() in lowered_query:
            resources.append(
                OracleResource(
                    title=f"{topic}: step-by-step tutorial",
                    url=f"https://www.freecodecamp.org/news/search/?query={quote_plus(topic)}",
                    type=ResourceType.TUTORIAL,
                    description=f"Hands-on walkthroughs for {topic}, matched to what you asked for help with",
                    relevance=HELP_TOPIC_RELEVANCE,
                )
            )
    return resources


def _top_skill_resource(lowered_query: str, profile: UserProfile) -> OracleResource | None:
    if not profile.skills:
        return None
    skill = profile.skills[0].strip()
    key = skill.lower()
    if not key or key not in lowered_query:
        return None

    title, url = ADVANCED_SKILL_RESOURCES.get(
        key,
        (f"Advanced {skill}", f"https://github.com/topics/{quote_plus(key.replace(' ', '-'))}"),
    )
    return OracleResource(
        title=title,
        url=url,
        type=ResourceType.ARTICLE,
        description=f"Advanced material for someone already working with {skill}",
        relevance=TOP_SKILL_RELEVANCE,
    )
