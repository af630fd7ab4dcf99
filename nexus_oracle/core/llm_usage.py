"""LLM usage logger for token/cost tracking."""

from nexus_oracle.core.logging import get_logger
from nexus_oracle.db.supabase_client import get_supabase

logger = get_logger(__name__)

# Pricing per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gpt-4o": (2.50, 10.0),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1": (2.00, 8.00),
    "gpt-4.1-mini": (0.40, 1.60),
    "gpt-4": (30.0, 60.0),
    "gpt-3.5-turbo": (0.50, 1.50),
}


def _estimate_cost(model: str, tokens_input: int, tokens_output: int) -> float:
    """Estimate cost in USD based on model pricing."""
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        # Dated snapshots (gpt-4o-2024-08-06) price like their base model
        for key in sorted(MODEL_PRICING, key=len, reverse=True):
            if model.startswith(key):
                pricing = MODEL_PRICING[key]
                break
    if not pricing:
        logger.warning(f"No pricing found for model '{model}', using $0")
        return 0.0

    input_rate, output_rate = pricing
    cost = (tokens_input * input_rate / 1_000_000) + (tokens_output * output_rate / 1_000_000)
    return round(cost, 6)


def log_llm_usage(
    workflow: str,
    model: str,
    tokens_input: int,
    tokens_output: int,
    duration_ms: int = 0,
    user_id: str | None = None,
    team_id: str | None = None,
) -> None:
    """Log an LLM call to the usage tracking table. Fire-and-forget."""
    try:
        estimated_cost = _estimate_cost(model, tokens_input, tokens_output)

        row = {
            "workflow": workflow,
            "model": model,
            "provider": "openai",
            "tokens_input": tokens_input,
            "tokens_output": tokens_output,
            "estimated_cost_usd": estimated_cost,
            "duration_ms": duration_ms,
        }
        if user_id:
            row["user_id"] = str(user_id)
        if team_id:
            row["team_id"] = str(team_id)

        get_supabase().table("llm_usage_log").insert(row).execute()

        logger.debug(
            f"LLM usage logged: {workflow} model={model} "
            f"tokens={tokens_input}+{tokens_output} cost=${estimated_cost:.4f}"
        )
    except Exception as e:
        # Never fail the main operation due to logging
        logger.error(f"Failed to log LLM usage: {e}")
