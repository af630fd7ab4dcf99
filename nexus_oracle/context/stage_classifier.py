"""Team lifecycle stage classification from keyword evidence.

Scores every stage additively from three sources and picks the maximum:

- query text (``QUERY_KEYWORD_WEIGHT`` per keyword)
- up to ``MAX_UPDATES_CONSIDERED`` most recent updates (``UPDATE_KEYWORD_WEIGHT`` each)
- the team's persisted stage (``PERSISTED_STAGE_BONUS``)

Ties resolve to the earlier stage in ``Stage`` declaration order. Pure function,
no I/O.
"""

from nexus_oracle.core.schemas_oracle import Stage, StageAnalysis, Team, Update
from nexus_oracle.core.stage_taxonomy import (
    BASE_CONFIDENCE,
    CONFIDENCE_PER_POINT,
    MAX_CONFIDENCE,
    MAX_UPDATES_CONSIDERED,
    PERSISTED_STAGE_BONUS,
    QUERY_KEYWORD_WEIGHT,
    UPDATE_KEYWORD_WEIGHT,
    keyword_hits,
)


def score_stages(
    recent_updates: list[Update],
    team: Team | None,
    query: str,
) -> dict[Stage, float]:
    """Raw per-stage scores, in ``Stage`` declaration order."""
    updates = _most_recent(recent_updates)
    scores: dict[Stage, float] = {}
    for stage in Stage:
        score = keyword_hits(query, stage) * QUERY_KEYWORD_WEIGHT
        for update in updates:
            score += keyword_hits(update.content, stage) * UPDATE_KEYWORD_WEIGHT
        if team is not None and team.stage == stage:
            score += PERSISTED_STAGE_BONUS
        scores[stage] = score
    return scores


def classify(
    recent_updates: list[Update],
    team: Team | None,
    query: str,
) -> StageAnalysis:
    """
    Classify the team's current lifecycle stage.

    Args:
        recent_updates: Team updates (any order; newest five are used)
        team: Team record, if known
        query: Current user query

    Returns:
        StageAnalysis with stage, confidence in [0.5, 0.95] and reasoning
    """
    scores = score_stages(recent_updates, team, query)

    best_stage = Stage.IDEATION
    best_score = 0.0
    for stage, score in scores.items():
        # Strict comparison keeps the earliest stage on ties
        if score > best_score:
            best_stage, best_score = stage, score

    confidence = min(MAX_CONFIDENCE, BASE_CONFIDENCE + best_score * CONFIDENCE_PER_POINT)

    return StageAnalysis(
        stage=best_stage,
        confidence=round(confidence, 3),
        reasoning=_reasoning(best_stage, best_score, team),
    )


def _most_recent(updates: list[Update]) -> list[Update]:
    if all(u.created_at is not None for u in updates):
        updates = sorted(updates, key=lambda u: u.created_at, reverse=True)
    return updates[:MAX_UPDATES_CONSIDERED]


def _reasoning(stage: Stage, score: float, team: Team | None) -> str:
    if score == 0:
        return "No stage signals in the query or recent updates; defaulting to ideation"
    parts = [f"Based on keywords and context, team appears to be in {stage.value} stage"]
    if team is not None and team.stage == stage:
        parts.append("consistent with the team's recorded stage")
    return ", ".join(parts) + f" (score {score:g})"
