"""Main API router aggregator."""

from fastapi import APIRouter

from meeting_minutes.api.v1 import transcribe, usage

api_router = APIRouter()

api_router.include_router(transcribe.router, prefix="/transcribe", tags=["transcribe"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
