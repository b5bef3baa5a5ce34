"""Health check endpoint.

Reports which generator backends are wired and whether their API keys are
configured. Always returns 200 so load balancers keep routing.
"""

from __future__ import annotations

from fastapi import APIRouter

from spaceplan.api.routes import flows
from spaceplan.config import settings

router = APIRouter(tags=["health"])


def _key_status(key: str) -> str:
    return "configured" if key.strip() else "missing"


@router.get("/health")
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "generators": "mock" if settings.use_mock_generators else "live",
        "anthropic": _key_status(settings.anthropic_api_key),
        "gemini": _key_status(settings.google_ai_api_key),
        "active_flows": len(flows._flows),
    }
