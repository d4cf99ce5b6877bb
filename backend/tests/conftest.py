"""Shared test fixtures."""

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.base import get_async_session

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ACHP_SLUG = "advisory-council-on-historic-preservation"


def load_fixture(name: str) -> Any:
    """Load a recorded JSON response from tests/fixtures."""
    return json.loads((FIXTURES_DIR / name).read_text())


@pytest.fixture
def achp_hierarchy() -> dict[str, Any]:
    """Recorded counts/hierarchy response for the ACHP agency."""
    return load_fixture(f"{ACHP_SLUG}_hierarchy.json")


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock async session."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def client(mock_session: MagicMock) -> Iterator[TestClient]:
    """FastAPI test client whose database session is a mock."""

    async def override_session():
        yield mock_session

    app.dependency_overrides[get_async_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()
