"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from catalog_ingest.api.v1 import health, runs, sync

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(runs.router, prefix="/runs", tags=["runs"])
api_v1_router.include_router(sync.router, prefix="/sync", tags=["sync"])
