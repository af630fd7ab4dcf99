"""Oracle request pipeline LangGraph.

Flow:
    load_team_data -> classify_stage -> match_and_rank -> parse_intent
        -> [execute_command] -> assemble_context -> generate_response -> finalize

``execute_command`` only runs when the intent is actionable. The graph is
compiled once per ``OraclePipeline`` with its LLM client bound in, so the
rate limiter that client carries is shared by every request the pipeline
serves and by nothing else.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, TypeVar

from langgraph.graph import END, StateGraph
from pydantic import BaseModel, ValidationError

from nexus_oracle.chains.command_executor import execute
from nexus_oracle.chains.generate_response import (
    APOLOGY_CONFIDENCE,
    GeneratedResponse,
    apology_response,
    compute_confidence,
    generate,
    system_prompt_for,
)
from nexus_oracle.chains.parse_intent import parse_intent
from nexus_oracle.context import person_matcher, resource_ranker, stage_classifier
from nexus_oracle.context.context_assembler import assemble
from nexus_oracle.context.role_views import view_for
from nexus_oracle.core.config import get_settings
from nexus_oracle.core.embeddings import embed_query_async
from nexus_oracle.core.errors import CommandValidationError
from nexus_oracle.core.llm import OracleLLM, get_oracle_llm
from nexus_oracle.core.logging import get_logger, log_with_context
from nexus_oracle.core.schemas_oracle import (
    CommandResult,
    IntentDescriptor,
    Member,
    OracleResource,
    OracleResponse,
    Role,
    StageAnalysis,
    Team,
    Update,
    ValidatedOracleRequest,
)
from nexus_oracle.core.stage_taxonomy import frameworks_for, next_actions_for
from nexus_oracle.db.documents import match_documents
from nexus_oracle.db.members import list_team_members
from nexus_oracle.db.oracle_logs import log_oracle_interaction
from nexus_oracle.db.teams import get_team
from nexus_oracle.db.updates import list_recent_updates

logger = get_logger(__name__)

RowModel = TypeVar("RowModel", bound=BaseModel)

RECENT_UPDATES_LIMIT = 5
ROSTER_ROLES = frozenset({Role.MENTOR, Role.LEAD})


@dataclass
class OracleState:
    """State for the Oracle pipeline graph."""

    # Input
    request: ValidatedOracleRequest
    request_id: str
    started_at: float

    # Loaded data
    team: Team | None = None
    updates: list[Update] = field(default_factory=list)
    roster: list[Member] = field(default_factory=list)
    documents: list[dict[str, Any]] = field(default_factory=list)

    # Analysis
    stage: StageAnalysis | None = None
    people: list[Member] = field(default_factory=list)
    resources: list[OracleResource] = field(default_factory=list)
    intent: IntentDescriptor | None = None
    command_result: CommandResult | None = None

    # Output
    context: str = ""
    generated: GeneratedResponse | None = None
    response: OracleResponse | None = None


class OraclePipeline:
    """Compiled Oracle graph bound to one LLM client."""

    def __init__(self, llm: OracleLLM):
        self.llm = llm
        self._graph = self._build_graph().compile()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def load_team_data(self, state: OracleState) -> dict[str, Any]:
        """Load the team record, recent updates and (for mentors/leads) the roster."""
        request = state.request
        if not request.team_id:
            return {"team": None}

        fetch_roster = request.role in ROSTER_ROLES
        team_row, update_rows, roster_rows = await asyncio.gather(
            asyncio.to_thread(get_team, request.team_id),
            asyncio.to_thread(list_recent_updates, request.team_id, RECENT_UPDATES_LIMIT),
            asyncio.to_thread(list_team_members, request.team_id) if fetch_roster else _empty(),
        )

        team = Team.model_validate(team_row) if team_row else None
        if team is None:
            logger.warning(f"Team {request.team_id} not found", extra={"request_id": state.request_id})
            return {"team": None}

        return {
            "team": team,
            "updates": parse_rows(Update, update_rows),
            "roster": parse_rows(Member, roster_rows),
        }

    async def classify_stage(self, state: OracleState) -> dict[str, Any]:
        analysis = stage_classifier.classify(state.updates, state.team, state.request.query)
        log_with_context(
            logger,
            logging.INFO,
            f"Detected stage {analysis.stage.value}",
            request_id=state.request_id,
            confidence=analysis.confidence,
        )
        return {"stage": analysis}

    async def match_and_rank(self, state: OracleState) -> dict[str, Any]:
        """Person matching, resource ranking and knowledge lookup, concurrently."""
        request = state.request
        wants = request.context_request

        people_task = (
            self._match_people(state) if wants.needs_mentions else _empty()
        )
        resources_task = (
            asyncio.to_thread(
                resource_ranker.rank,
                request.query,
                request.profile,
                state.stage.stage if state.stage else None,
                request.role,
            )
            if wants.needs_resources
            else _empty()
        )
        people, resources, documents = await asyncio.gather(
            people_task, resources_task, self._search_knowledge(state)
        )
        return {"people": people, "resources": resources, "documents": documents}

    async def detect_intent(self, state: OracleState) -> dict[str, Any]:
        request = state.request
        intent = await parse_intent(
            request.query, self.llm, user_id=request.user_id, team_id=request.team_id
        )
        return {"intent": intent}

    async def execute_command(self, state: OracleState) -> dict[str, Any]:
        request = state.request
        intent = state.intent
        try:
            result = await asyncio.to_thread(
                execute, intent, request.role, request.team_id, request.user_id
            )
        except CommandValidationError as e:
            result = CommandResult(executed=True, action=intent.action, message=f"❌ {e.message}")

        log_with_context(
            logger,
            logging.INFO,
            f"Command {intent.action.value}: {result.message}",
            request_id=state.request_id,
        )
        return {"command_result": result}

    async def assemble_context(self, state: OracleState) -> dict[str, Any]:
        request = state.request
        context = assemble(
            request.role,
            state.team,
            state.updates,
            request.profile,
            state.people,
            state.resources,
            roster=state.roster,
            stage=state.stage,
            command_result=state.command_result,
            documents=state.documents,
        )
        return {"context": context}

    async def generate_response(self, state: OracleState) -> dict[str, Any]:
        request = state.request
        generated = await generate(
            system_prompt_for(request.role),
            state.context,
            request.query,
            request.role,
            self.llm,
            user_id=request.user_id,
            team_id=request.team_id,
        )
        return {"generated": generated}

    async def finalize(self, state: OracleState) -> dict[str, Any]:
        """Build the response envelope and write the interaction log."""
        request = state.request
        generated = state.generated
        view = view_for(request.role)
        stage = state.stage
        command = state.command_result

        confidence = compute_confidence(
            has_profile=request.profile is not None,
            has_team_context=state.team is not None,
            has_resources=bool(state.resources),
            has_people=bool(state.people),
            degraded=generated.degraded,
        )
        processing_time_ms = int((time.time() - state.started_at) * 1000)
        sources = len(state.documents) + len(state.updates) + len(state.people)

        response = OracleResponse(
            answer=generated.answer,
            sources=sources,
            confidence=confidence,
            detected_stage=stage.stage if stage else None,
            stage_confidence=stage.confidence if stage else None,
            stage_reasoning=stage.reasoning if stage else None,
            resources=state.resources,
            mentions=[m.name for m in state.people] if view.filter_people(state.people) else [],
            next_actions=next_actions_for(stage.stage) if stage else [],
            suggested_frameworks=frameworks_for(stage.stage, request.query) if stage else [],
            personalization=view.personalization(request.profile),
            command_executed=bool(command and command.executed),
            command_type=command.action if command else None,
            command_result=command.message if command else None,
            model_used=generated.model_used,
            processing_time_ms=processing_time_ms,
        )

        await asyncio.to_thread(
            log_oracle_interaction,
            query=request.query,
            response=response.answer,
            user_role=request.role.value,
            sources_count=sources,
            processing_time_ms=processing_time_ms,
            user_id=request.user_id,
            team_id=request.team_id,
            extra={
                "detected_stage": stage.stage.value if stage else None,
                "confidence": confidence,
                "command_type": command.action.value if command else None,
                "model_used": generated.model_used,
            },
        )
        return {"response": response}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _match_people(self, state: OracleState) -> list[Member]:
        request = state.request
        try:
            return await asyncio.to_thread(
                person_matcher.match, request.query, request.profile, request.role
            )
        except Exception as e:
            logger.warning(f"Person matching failed: {e}", extra={"request_id": state.request_id})
            return []

    async def _search_knowledge(self, state: OracleState) -> list[dict[str, Any]]:
        settings = get_settings()
        if not settings.KNOWLEDGE_SEARCH_ENABLED:
            return []
        try:
            embedding = await embed_query_async(state.request.query)
            return await asyncio.to_thread(
                match_documents,
                embedding,
                state.request.role.value,
                settings.KNOWLEDGE_TOP_K,
                settings.KNOWLEDGE_MATCH_THRESHOLD,
            )
        except Exception as e:
            logger.warning(f"Knowledge search failed: {e}", extra={"request_id": state.request_id})
            return []

    @staticmethod
    def _route_after_intent(state: OracleState) -> str:
        if state.intent is not None and state.intent.is_actionable:
            return "execute_command"
        return "assemble_context"

    def _build_graph(self) -> StateGraph:
        graph = StateGraph(OracleState)

        graph.add_node("load_team_data", self.load_team_data)
        graph.add_node("classify_stage", self.classify_stage)
        graph.add_node("match_and_rank", self.match_and_rank)
        graph.add_node("parse_intent", self.detect_intent)
        graph.add_node("execute_command", self.execute_command)
        graph.add_node("assemble_context", self.assemble_context)
        graph.add_node("generate_response", self.generate_response)
        graph.add_node("finalize", self.finalize)

        graph.set_entry_point("load_team_data")
        graph.add_edge("load_team_data", "classify_stage")
        graph.add_edge("classify_stage", "match_and_rank")
        graph.add_edge("match_and_rank", "parse_intent")
        graph.add_conditional_edges(
            "parse_intent",
            self._route_after_intent,
            {"execute_command": "execute_command", "assemble_context": "assemble_context"},
        )
        graph.add_edge("execute_command", "assemble_context")
        graph.add_edge("assemble_context", "generate_response")
        graph.add_edge("generate_response", "finalize")
        graph.add_edge("finalize", END)

        return graph

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, request: ValidatedOracleRequest) -> OracleResponse:
        """
        Answer one validated Oracle request.

        Never raises: unexpected failures produce a low-confidence apology.
        """
        request_id = str(uuid.uuid4())
        started_at = time.time()
        log_with_context(
            logger,
            logging.INFO,
            "Oracle request received",
            request_id=request_id,
            role=request.role.value,
            team_id=request.team_id,
        )

        initial_state = OracleState(request=request, request_id=request_id, started_at=started_at)
        try:
            final_state = await self._graph.ainvoke(initial_state)
            return final_state["response"]
        except Exception:
            logger.exception("Oracle pipeline failed", extra={"request_id": request_id})
            return OracleResponse(
                answer=apology_response(request.role),
                confidence=APOLOGY_CONFIDENCE,
                processing_time_ms=int((time.time() - started_at) * 1000),
            )


def parse_rows(model: type[RowModel], rows: list[dict]) -> list[RowModel]:
    """Validate store rows, skipping (and logging) any that do not fit the model."""
    parsed = []
    for row in rows:
        try:
            parsed.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed {model.__name__.lower()} row {row.get('id')}: {e.error_count()} errors"
            )
    return parsed


async def _empty() -> list:
    return []


@lru_cache(maxsize=1)
def get_oracle_pipeline() -> OraclePipeline:
    return OraclePipeline(get_oracle_llm())
