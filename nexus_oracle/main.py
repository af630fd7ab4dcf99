"""FastAPI application entry point."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nexus_oracle.api import router as api_router
from nexus_oracle.core.errors import OracleError, OracleValidationError
from nexus_oracle.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Nexus Oracle",
    description="Role-aware assistant pipeline for an incubator community",
    version="0.1.0",
)


@app.exception_handler(OracleError)
async def oracle_error_handler(request: Request, exc: OracleError) -> JSONResponse:
    logger.info(f"Rejected {request.url.path}: code={exc.code} field={exc.field}")
    return JSONResponse(status_code=exc.status, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body type errors in the same {error, code, field} shape as OracleValidationError."""
    first = exc.errors()[0]
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    error = OracleValidationError(
        f"Invalid value: {first.get('msg', 'wrong type')}",
        field=".".join(location) or "body",
        code="invalid_type",
    )
    return await oracle_error_handler(request, error)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


app.include_router(api_router, prefix="/v1", tags=["v1"])
