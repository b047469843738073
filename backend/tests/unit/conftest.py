"""
Conftest for unit tests against the in-memory store.

All tests in this directory are automatically marked as unit tests.
"""
import os
import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock, patch
import sys
from pathlib import Path

# Add parent directory to path to import main
backend_path = Path(__file__).parent.parent.parent
sys.path.insert(0, str(backend_path))

# Never reach a real project from unit tests
os.environ["STORE_BACKEND"] = "memory"

from main import app
from services.engine import TradeEngine
from services.retry import RetryPolicy
from stores.memory import MemoryStore


def pytest_collection_modifyitems(items):
    """Automatically mark all tests in this directory as unit tests."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def store():
    """A fresh in-memory store per test."""
    return MemoryStore()


@pytest.fixture
def engine(store):
    """Trade engine over the in-memory store, without retry delays."""
    return TradeEngine(store, retry=RetryPolicy(max_retries=0))


@pytest.fixture(autouse=True)
def mock_engine(engine):
    """Automatically swap the app's engine for the in-memory one."""
    with patch("main.engine", engine):
        yield engine


@pytest.fixture
def mock_supabase():
    """Create a mock Supabase client."""
    mock = MagicMock()

    # Setup table method to return the mock itself for chaining
    mock.table.return_value = mock
    mock.select.return_value = mock
    mock.insert.return_value = mock
    mock.upsert.return_value = mock
    mock.update.return_value = mock
    mock.delete.return_value = mock
    mock.eq.return_value = mock
    mock.gt.return_value = mock
    mock.or_.return_value = mock
    mock.order.return_value = mock
    mock.limit.return_value = mock
    mock.rpc.return_value = mock

    return mock


# ============== Users and cards ==============

@pytest.fixture
def sample_owner_user_id():
    """User who owns the card being requested."""
    return "owner_user_456"


@pytest.fixture
def sample_requester_user_id():
    """User asking for the card."""
    return "requester_user_123"


@pytest.fixture
def sample_outsider_user_id():
    """User who is not party to any trade."""
    return "outsider_user_789"


@pytest.fixture
def sample_card_id():
    return 42


@pytest.fixture
def owner_headers(sample_owner_user_id):
    return {"X-User-Id": sample_owner_user_id}


@pytest.fixture
def requester_headers(sample_requester_user_id):
    return {"X-User-Id": sample_requester_user_id}


@pytest.fixture
def outsider_headers(sample_outsider_user_id):
    return {"X-User-Id": sample_outsider_user_id}


# ============== Trade-related fixtures ==============

@pytest.fixture
def owner_with_duplicates(store, sample_owner_user_id, sample_card_id):
    """Owner holds two copies of the sample card; requester holds none."""
    store.adjust(sample_owner_user_id, sample_card_id, 2)
    return store


@pytest.fixture
def pending_request(owner_with_duplicates, sample_requester_user_id, sample_owner_user_id, sample_card_id):
    """A pending request from requester to owner for the sample card."""
    return owner_with_duplicates.create_request(
        sample_requester_user_id, sample_owner_user_id, sample_card_id
    )


@pytest.fixture
def waiting_session(store, pending_request):
    """A session in waiting_real_life, created by accepting the pending request."""
    _, session = store.decide_request(pending_request.id, accept=True)
    return session
