"""API router for v1 endpoints."""

from fastapi import APIRouter

from nexus_oracle.api import bridge, oracle

router = APIRouter()

router.include_router(oracle.router, tags=["oracle"])
router.include_router(bridge.router, tags=["bridge"])
