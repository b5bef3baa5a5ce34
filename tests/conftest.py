"""Shared fixtures: virtual-clock scheduler, canned facts and an API client."""

import pytest
from httpx import ASGITransport, AsyncClient

import spaceplan.api.routes.flows as _flows_mod
from spaceplan.config import settings
from spaceplan.models.contracts import Location, ProjectFacts, Scale
from spaceplan.workflows.scheduler import ManualScheduler


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def facts() -> ProjectFacts:
    """A fully answered required section (pension on Jeju, 5억~15억)."""
    return ProjectFacts(
        project_status="planning",
        location=Location(region="jeju", location_type="tourist"),
        accommodation_type="pension",
        scale=Scale(rooms="10-20", area="100-300py", floors="1-2", parking="6-10"),
        budget="5b-15b",
        include_building_purchase=False,
    )


@pytest.fixture
def api_scheduler(monkeypatch) -> ManualScheduler:
    """ManualScheduler installed as the API's pacing scheduler."""
    manual = ManualScheduler()
    monkeypatch.setattr(_flows_mod, "_scheduler", manual)
    return manual


@pytest.fixture
async def client(api_scheduler, monkeypatch):
    """API client over ASGI with mock generators and an empty flow store."""
    from spaceplan.main import app

    monkeypatch.setattr(settings, "use_mock_generators", True)
    _flows_mod._flows.clear()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    _flows_mod._flows.clear()
