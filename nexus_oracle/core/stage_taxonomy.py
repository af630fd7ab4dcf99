"""Shared lifecycle-stage taxonomy.

Keyword lists, scoring weights and per-stage guidance are plain data so every
consumer (stage classifier, context assembly, next-action generation)
reads the same table.
"""

from dataclasses import dataclass, field

from nexus_oracle.core.schemas_oracle import Stage

# Scoring weights
QUERY_KEYWORD_WEIGHT = 1.0
UPDATE_KEYWORD_WEIGHT = 0.5
PERSISTED_STAGE_BONUS = 2.0
MAX_UPDATES_CONSIDERED = 5

BASE_CONFIDENCE = 0.5
CONFIDENCE_PER_POINT = 0.1
MAX_CONFIDENCE = 0.95

# Keywords are matched as lowercase substrings. No keyword appears under two stages.
STAGE_KEYWORDS: dict[Stage, tuple[str, ...]] = {
    Stage.IDEATION: (
        "idea",
        "validate",
        "problem",
        "target market",
        "hypothesis",
        "research",
        "interview",
        "brainstorm",
    ),
    Stage.DEVELOPMENT: (
        "build",
        "code",
        "feature",
        "mvp",
        "prototype",
        "develop",
        "implement",
        "deploy",
    ),
    Stage.TESTING: (
        "test",
        "feedback",
        "iterate",
        "analytics",
        "pivot",
        "beta",
        "bug",
    ),
    Stage.LAUNCH: (
        "launch",
        "marketing",
        "acquire",
        "sales",
        "campaign",
        "go-to-market",
        "press release",
    ),
    Stage.GROWTH: (
        "scale",
        "growth",
        "optimize",
        "metrics",
        "revenue",
        "hiring",
        "fundrais",
    ),
}


@dataclass(frozen=True)
class StageInfo:
    title: str
    description: str
    support_needed: tuple[str, ...]
    frameworks: tuple[str, ...]
    next_actions: tuple[str, ...]
    characteristics: tuple[str, ...] = field(default_factory=tuple)


STAGE_INFO: dict[Stage, StageInfo] = {
    Stage.IDEATION: StageInfo(
        title="Ideation & Validation",
        description="Exploring the problem space and validating that the problem is worth solving.",
        characteristics=("Problem discovery", "Customer interviews", "Market sizing"),
        support_needed=("Customer discovery", "Problem validation", "Market research"),
        frameworks=("Lean Canvas", "Jobs-to-be-Done", "Customer Development", "Mom Test"),
        next_actions=(
            "Conduct customer interviews to validate the problem",
            "Define the target market and personas",
            "Test core assumptions with potential users",
            "Draft an initial product roadmap",
        ),
    ),
    Stage.DEVELOPMENT: StageInfo(
        title="Building the MVP",
        description="Turning validated insight into a minimum viable product.",
        characteristics=("Feature scoping", "Technical architecture", "Rapid prototyping"),
        support_needed=("Technical architecture", "Scope control", "Development practices"),
        frameworks=("MVP Scoping", "Agile Sprints", "Build-Measure-Learn", "MoSCoW Prioritization"),
        next_actions=(
            "Cut the MVP down to the one workflow that proves value",
            "Set up a deploy pipeline so every merge ships",
            "Plan the next two-week sprint",
            "Book a technical review with a mentor",
        ),
    ),
    Stage.TESTING: StageInfo(
        title="Testing & Iteration",
        description="Putting the product in front of users and learning from how they use it.",
        characteristics=("User testing", "Feedback loops", "Instrumentation"),
        support_needed=("User research", "Analytics setup", "Prioritizing feedback"),
        frameworks=("Usability Testing", "AARRR Metrics", "A/B Testing", "Kano Model"),
        next_actions=(
            "Run five moderated user tests this week",
            "Instrument the activation funnel",
            "Group feedback into themes and rank by frequency",
            "Decide what to double down on and what to cut",
        ),
    ),
    Stage.LAUNCH: StageInfo(
        title="Launch",
        description="Taking the product to market and acquiring the first real customers.",
        characteristics=("Go-to-market", "Positioning", "First customers"),
        support_needed=("Marketing strategy", "Sales process", "Launch planning"),
        frameworks=("Go-To-Market Canvas", "Bullseye Framework", "Positioning Statement"),
        next_actions=(
            "Write a one-sentence positioning statement",
            "Pick two acquisition channels and set weekly targets",
            "Prepare launch assets and a launch-day checklist",
            "Line up the first ten customers to onboard personally",
        ),
    ),
    Stage.GROWTH: StageInfo(
        title="Growth & Scale",
        description="Scaling what works: metrics, team and revenue.",
        characteristics=("Unit economics", "Team building", "Process"),
        support_needed=("Scaling operations", "Hiring", "Fundraising"),
        frameworks=("North Star Metric", "Growth Loops", "OKRs", "Unit Economics"),
        next_actions=(
            "Choose a north star metric and review it weekly",
            "Map the growth loop that drives most new users",
            "Identify the first key hire",
            "Prepare a fundraising narrative backed by metrics",
        ),
    ),
}

# Topic words in a query that pull extra frameworks in alongside the stage ones
SITUATIONAL_FRAMEWORKS: dict[tuple[str, ...], tuple[str, ...]] = {
    ("customer", "user"): ("Customer Journey Mapping", "Persona Development"),
    ("market", "competition", "competitor"): ("Competitive Analysis", "Porter's Five Forces"),
    ("technical", "architecture", "stack"): ("System Design Review", "Technical Debt Assessment"),
    ("growth", "scale"): ("Growth Hacking", "Scaling Playbook"),
}

MAX_FRAMEWORKS = 3


def keyword_hits(text: str, stage: Stage) -> int:
    """Count the stage's keywords present in ``text`` (case-insensitive)."""
    if not text:
        return 0
    lowered = text.lower()
    return sum(1 for keyword in STAGE_KEYWORDS[stage] if keyword in lowered)


def next_actions_for(stage: Stage) -> list[str]:
    return list(STAGE_INFO[stage].next_actions)


def frameworks_for(stage: Stage, situation: str = "") -> list[str]:
    """Stage frameworks plus situational ones, deduplicated, top ``MAX_FRAMEWORKS``."""
    candidates = list(STAGE_INFO[stage].frameworks)
    lowered = situation.lower()
    for triggers, extra in SITUATIONAL_FRAMEWORKS.items():
        if any(t in lowered for t in triggers):
            # Situational picks rank ahead of stage defaults
            candidates = list(extra) + candidates

    seen: set[str] = set()
    result = []
    for name in candidates:
        if name not in seen:
            seen.add(name)
            result.append(name)
    return result[:MAX_FRAMEWORKS]
