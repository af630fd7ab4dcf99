"""Generate the Oracle's natural-language answer.

The primary model is called once; an "overloaded" failure gets exactly one
retry on the fallback model with identical parameters. Any other failure (or
a failed retry) returns the role's canned answer with ``degraded=True`` so
the caller can lower confidence.
"""

import re
from dataclasses import dataclass

from nexus_oracle.core.config import get_settings
from nexus_oracle.core.errors import LLMError, LLMErrorKind
from nexus_oracle.core.llm import OracleLLM
from nexus_oracle.core.logging import get_logger
from nexus_oracle.core.schemas_oracle import Role

logger = get_logger(__name__)

BASE_CONFIDENCE = 75
PROFILE_BONUS = 15
TEAM_BONUS = 10
RESOURCES_BONUS = 5
PEOPLE_BONUS = 10
MAX_CONFIDENCE = 100
DEGRADED_CONFIDENCE_CAP = 40

_SHARED_RULES = """
Answer the question directly, in at most about 250 words.
Use only the context below for facts about teams, people and updates; never invent names.
If an action result is present, confirm it to the user in your first sentence.
Do not use markdown headings."""

PERSONA_PROMPTS: dict[Role, str] = {
    Role.BUILDER: (
        "You are the Nexus Oracle, a hands-on technical co-pilot for founders building in an "
        "incubator cohort. Be practical and specific: concrete next steps, code-level advice when "
        "relevant, and pointers to the people and resources in the context. Start your answer with "
        '"🚀 Nexus Oracle:".' + _SHARED_RULES
    ),
    Role.MENTOR: (
        "You are the Nexus Guide, supporting mentors who coach cohort teams. Focus on how to guide "
        "the team: what to ask, where they are likely stuck, and which frameworks fit their stage. "
        'Start your answer with "🌟 Nexus Guide:".' + _SHARED_RULES
    ),
    Role.LEAD: (
        "You are Nexus Command, the program lead's operations assistant. Be concise and "
        "decision-oriented: surface risks, progress signals and coordination actions across teams. "
        'Start your answer with "⚡ Nexus Command:".' + _SHARED_RULES
    ),
    Role.GUEST: (
        "You are the Nexus Oracle welcoming a visitor to an incubator community. Explain how the "
        "program works and give general startup guidance. You have no information about individual "
        "members and must not name or describe any person. Start your answer with "
        '"🌟 Welcome to Nexus:".' + _SHARED_RULES
    ),
}

CANNED_RESPONSES: dict[Role, str] = {
    Role.BUILDER: (
        "🚀 Nexus Oracle: I can't reach my reasoning engine right now. In the meantime, break the "
        "problem into the smallest testable step, check the resources attached below, and post an "
        "update so your mentor can weigh in. Try me again in a minute."
    ),
    Role.MENTOR: (
        "🌟 Nexus Guide: I'm temporarily unable to generate guidance. A good default while I'm out: "
        "ask the team what they learned from users this week and what they'll cut to ship faster. "
        "Please retry shortly."
    ),
    Role.LEAD: (
        "⚡ Nexus Command: The assistant backend is unavailable. Team dashboards and updates are "
        "unaffected; any action you requested is reported above. Retry in a minute for analysis."
    ),
    Role.GUEST: (
        "🌟 Welcome to Nexus: I'm having trouble answering right now. Nexus is an incubator "
        "community where builders, mentors and leads work through ideation, development, testing, "
        "launch and growth together. Please try again shortly."
    ),
}

APOLOGY_CONFIDENCE = 10


@dataclass
class GeneratedResponse:
    answer: str
    model_used: str
    degraded: bool = False
    error_kind: LLMErrorKind | None = None


def system_prompt_for(role: Role | str) -> str:
    return PERSONA_PROMPTS[Role(role)]


def canned_response(role: Role | str) -> str:
    return CANNED_RESPONSES[Role(role)]


def apology_response(role: Role | str) -> str:
    """Answer used when the pipeline itself fails unexpectedly."""
    prefix = CANNED_RESPONSES[Role(role)].split(":", 1)[0]
    return f"{prefix}: Sorry, something went wrong while answering. Please try again."


def compute_confidence(
    has_profile: bool,
    has_team_context: bool,
    has_resources: bool,
    has_people: bool,
    degraded: bool = False,
) -> int:
    """Heuristic 0-100 confidence for an answer."""
    score = BASE_CONFIDENCE
    if has_profile:
        score += PROFILE_BONUS
    if has_team_context:
        score += TEAM_BONUS
    if has_resources:
        score += RESOURCES_BONUS
    if has_people:
        score += PEOPLE_BONUS
    score = min(MAX_CONFIDENCE, score)
    if degraded:
        score = min(score, DEGRADED_CONFIDENCE_CAP)
    return score


def _clean_answer(text: str) -> str:
    # Strip markdown headings the model sometimes emits despite instructions
    cleaned = re.sub(r"^\s{0,3}#{1,6}\s*", "", text, flags=re.MULTILINE)
    return cleaned.strip()


def _user_message(context: str, query: str) -> str:
    if not context:
        return f"Question: {query}"
    return f"Context:\n{context}\n\nQuestion: {query}"


async def generate(
    system_prompt: str,
    context: str,
    query: str,
    role: Role | str,
    llm: OracleLLM,
    user_id: str | None = None,
    team_id: str | None = None,
) -> GeneratedResponse:
    """
    Produce the final answer text.

    Args:
        system_prompt: Persona prompt (see ``system_prompt_for``)
        context: Role-scoped context block
        query: User query
        role: Requester role, selects the canned fallback
        llm: Language-model client

    Returns:
        GeneratedResponse; never raises for LLM failures
    """
    settings = get_settings()
    user_message = _user_message(context, query)
    models = [settings.ORACLE_CHAT_MODEL, settings.ORACLE_FALLBACK_MODEL]

    last_kind: LLMErrorKind | None = None
    for attempt, model in enumerate(models):
        try:
            completion = await llm.complete_chat(
                system_prompt,
                user_message,
                model=model,
                temperature=settings.ORACLE_TEMPERATURE,
                max_tokens=settings.ORACLE_MAX_TOKENS,
                workflow="generate_response",
                user_id=user_id,
                team_id=team_id,
            )
        except LLMError as e:
            last_kind = e.kind
            if e.kind == LLMErrorKind.OVERLOADED and attempt == 0:
                logger.warning(f"{model} overloaded, retrying once with {models[1]}")
                continue
            break

        answer = _clean_answer(completion.text)
        if not answer:
            last_kind = LLMErrorKind.UNKNOWN
            logger.warning(f"{model} returned an empty answer")
            break
        return GeneratedResponse(answer=answer, model_used=completion.model)

    logger.warning(f"Serving canned answer for role={Role(role).value}: {last_kind.value if last_kind else 'unknown'}")
    return GeneratedResponse(
        answer=canned_response(role),
        model_used="fallback",
        degraded=True,
        error_kind=last_kind,
    )
