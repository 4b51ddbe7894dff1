"""
Test Configuration and Fixtures

Shared fixtures for the objective graph suite. Storage-backed tests run
against a throwaway file-backed SQLite database through aiosqlite, with
foreign keys enforced, so constraint and rollback behaviour is real.
"""

import os

import pytest
import pytest_asyncio

# Set test environment variables before importing application modules.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "text")


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (may use real services)")


def pytest_collection_modifyitems(config, items):
    """
    Auto-assign tier markers so we can run:
    - pytest -m unit
    - pytest -m integration

    Convention:
    - tests/integration/** => integration
    - everything else      => unit
    """
    for item in items:
        path = str(getattr(item, "fspath", ""))
        if item.get_closest_marker("integration") or item.get_closest_marker("unit"):
            continue
        if "/tests/integration/" in path:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def fake_clock():
    """Deterministic clock; tests advance it explicitly between ingestions."""
    from tests.support.clock import FakeClock

    return FakeClock.fixed()


@pytest.fixture
def settings(tmp_path):
    from visium.config import Settings

    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'graph.db'}",
        log_level="WARNING",
        log_format="text",
    )


@pytest_asyncio.fixture
async def database(settings):
    """Opened database handle with the schema created from model metadata."""
    from visium.db.client import Database

    db = Database(settings.database_url)
    await db.open()
    await db.create_schema()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def service(database, settings, fake_clock):
    from visium.contexts.objective_graph.application.service import ObjectiveGraphService

    return ObjectiveGraphService(database, settings=settings, clock=fake_clock)


@pytest.fixture
def sample_extraction():
    """Extraction payload shaped like the model's JSON output."""
    return {
        "title": "Q3 planning notes",
        "objectives": [
            {
                "key": "OBJ_A",
                "statement": "Grow revenue 20% in Q3",
                "status": "in progress",
                "priority": "high",
                "confidence": 0.8,
                "metrics": ["MRR", "Net revenue retention"],
                "tags": ["Revenue", "growth", "revenue"],
                "category": "Revenue",
                "sourceExcerpt": "we need 20% more revenue this quarter",
            },
            {
                "key": "OBJ_B",
                "statement": "Reduce churn",
                "status": "planned",
                "priority": "medium",
                "tags": ["retention"],
            },
        ],
        "relationships": [
            {"from": "OBJ_B", "to": "OBJ_A", "type": "SUPPORTS", "rationale": "Less churn keeps revenue", "weight": 0.7},
        ],
    }
