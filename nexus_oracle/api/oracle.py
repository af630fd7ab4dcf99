"""Oracle query endpoint."""

from functools import lru_cache

from fastapi import APIRouter, Depends, Request

from nexus_oracle.core.config import get_settings
from nexus_oracle.core.rate_limiter import RequestRateLimiter
from nexus_oracle.core.request_validation import validate_oracle_request
from nexus_oracle.core.schemas_oracle import OracleRequest, OracleResponse
from nexus_oracle.graphs.oracle_pipeline import OraclePipeline, get_oracle_pipeline

router = APIRouter()


@lru_cache(maxsize=1)
def get_request_rate_limiter() -> RequestRateLimiter:
    settings = get_settings()
    return RequestRateLimiter(
        requests_per_minute=settings.ORACLE_REQUESTS_PER_MINUTE,
        burst_size=settings.ORACLE_BURST_SIZE,
    )


@router.post("/oracle", response_model=OracleResponse)
async def query_oracle(
    body: OracleRequest,
    request: Request,
    pipeline: OraclePipeline = Depends(get_oracle_pipeline),
    limiter: RequestRateLimiter = Depends(get_request_rate_limiter),
) -> OracleResponse:
    """
    Answer an Oracle query.

    Validation failures return 400 ``{error, code, field}``. Everything after
    validation returns 200, including degraded and apology answers.
    """
    validated = validate_oracle_request(body)

    client_host = request.client.host if request.client else "unknown"
    limiter.check_limit(f"oracle:{validated.user_id or client_host}")

    return await pipeline.run(validated)
