# tests/conftest.py
import asyncio
import sys
import uuid

import httpx
import pytest
import pytest_asyncio

from schoolhub.backend.main import app
from schoolhub.backend.models.db_models import Profile, Role

# Windows needs the selector loop for asyncpg and httpx under pytest.
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest_asyncio.fixture
async def api_client():
    """In-process client; the lifespan does not run, so every backend dependency must be overridden."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_profile() -> Profile:
    return Profile(id=uuid.uuid4(), full_name="Principal Skinner", role=Role.ADMIN)

@pytest.fixture
def teacher_profile() -> Profile:
    return Profile(id=uuid.uuid4(), full_name="Edna Krabappel", role=Role.TEACHER)

@pytest.fixture
def parent_profile() -> Profile:
    return Profile(id=uuid.uuid4(), full_name="Marge Simpson", role=Role.PARENT)
