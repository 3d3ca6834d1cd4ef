from fastapi import APIRouter

from app.api.v1.endpoints import forward, health, ingest, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router)
api_router.include_router(webhooks.router)
api_router.include_router(forward.router)

ingest_router = APIRouter()
ingest_router.include_router(health.router)
ingest_router.include_router(ingest.router)
