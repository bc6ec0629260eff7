"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are discovered automatically and their
fixtures are available to every test below them!
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from effort_budget.budget.models import Client
from effort_budget.budget.store import BudgetStore
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.time import TestTimeProvider
from effort_budget.service import EffortBudget
from tests.helpers import USER


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Path for a fresh database file, removed with tmp_path"""
    return tmp_path / "budgets.db"


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Controllable clock advancing 1 ms per reading

    Starts on Wednesday 2025-01-15 12:00 UTC, so consecutive writes get
    strictly increasing timestamps.
    """
    return TestTimeProvider(
        datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc), auto_advance_ms=1
    )


@pytest.fixture
def policy() -> EstimationPolicy:
    return EstimationPolicy()


@pytest.fixture
def store(temp_db: Path, policy: EstimationPolicy, test_time: TestTimeProvider) -> BudgetStore:
    return BudgetStore(temp_db, policy=policy, time_provider=test_time)


@pytest.fixture
def service(temp_db: Path, policy: EstimationPolicy, test_time: TestTimeProvider) -> EffortBudget:
    return EffortBudget(temp_db, policy=policy, time_provider=test_time)


@pytest.fixture
def client(service: EffortBudget) -> Client:
    """A client that budgets can reference"""
    return service.create_client(USER, name="Acme Corp", email="ops@acme.test")
