"""
Integration test fixtures for testing with real local Supabase database.

These fixtures connect to a local Supabase instance and perform real database operations.
Run `supabase start` (which applies supabase/migrations) before running integration tests.
All tests in this directory are automatically marked as integration tests.
"""
import pytest
import subprocess
import os
import warnings
from pathlib import Path
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from supabase import create_client, Client
from unittest.mock import patch
from uuid import uuid4

from services.engine import TradeEngine
from services.retry import RetryPolicy
from stores.supabase_store import SupabaseStore

# Path to the project root (where supabase/ folder is located)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


def pytest_collection_modifyitems(items):
    """Automatically mark all tests in this directory as integration tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def setup_test_environment():
    """Load .env.test at session start."""
    # .env.test is in the backend root
    env_test_path = Path(__file__).parent.parent.parent / ".env.test"
    load_dotenv(env_test_path, override=True)
    yield


@pytest.fixture(scope="session")
def supabase_client(setup_test_environment) -> Client:
    """Create a real Supabase client connected to local instance."""
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY")

    if not url or not key:
        pytest.skip("SUPABASE_URL and SERVICE_ROLE_KEY must be set in .env.test")

    return create_client(url, key)


@pytest.fixture(scope="session")
def reset_database(setup_test_environment):
    """
    Reset the database before the test session.

    If the supabase CLI is not available this is skipped; run
    `supabase db reset` manually before running integration tests if needed.
    """
    try:
        result = subprocess.run(
            ["supabase", "db", "reset", "--no-seed"],
            cwd=str(PROJECT_ROOT),
            capture_output=True,
            text=True,
            timeout=60
        )

        if result.returncode != 0:
            # Database might already be in good state
            warnings.warn(f"Could not reset database: {result.stderr}")
    except FileNotFoundError:
        warnings.warn("supabase CLI not found. Skipping database reset.")
    except subprocess.TimeoutExpired:
        warnings.warn("Database reset timed out. Continuing anyway.")

    yield


@pytest.fixture(scope="session")
def supabase_engine(supabase_client, reset_database):
    """Trade engine over the real Supabase store."""
    return TradeEngine(SupabaseStore(supabase_client), retry=RetryPolicy(max_retries=5))


@pytest.fixture
def integration_client(supabase_engine):
    """
    FastAPI TestClient configured to use real Supabase.

    Swaps the app's engine for one backed by the local instance.
    """
    from main import app

    with patch("main.engine", supabase_engine):
        yield TestClient(app)


@pytest.fixture
def clean_test_data(supabase_client):
    """
    Track users created by a test and delete their rows afterwards.

    Sessions reference requests, so they are removed first.
    """
    class TestDataTracker:
        def __init__(self, client):
            self.client = client
            self.user_ids = []

        def add_user(self, user_id: str):
            self.user_ids.append(user_id)

        def cleanup(self):
            for user_id in self.user_ids:
                self.client.table("trade_sessions").delete().eq("requester_id", user_id).execute()
                self.client.table("trade_sessions").delete().eq("owner_id", user_id).execute()
                self.client.table("trade_requests").delete().eq("from_user_id", user_id).execute()
                self.client.table("trade_requests").delete().eq("to_user_id", user_id).execute()
                self.client.table("trade_offers").delete().eq("user_id", user_id).execute()
                self.client.table("user_cards").delete().eq("user_id", user_id).execute()

    tracker = TestDataTracker(supabase_client)
    yield tracker
    tracker.cleanup()


# ============== Trade-related Integration Test Fixtures ==============

@pytest.fixture
def owner_user_id(clean_test_data):
    """Unique owner id for each test."""
    user_id = str(uuid4())
    clean_test_data.add_user(user_id)
    return user_id


@pytest.fixture
def requester_user_id(clean_test_data):
    """Unique requester id for each test."""
    user_id = str(uuid4())
    clean_test_data.add_user(user_id)
    return user_id


@pytest.fixture
def sample_card_id():
    return 1001


@pytest.fixture
def trading_setup(supabase_client, owner_user_id, requester_user_id, sample_card_id):
    """
    Owner holds two copies of the sample card; requester holds none.

    Returns a dict with owner, requester and card_id.
    """
    result = supabase_client.table("user_cards").insert({
        "user_id": owner_user_id,
        "card_id": sample_card_id,
        "quantity": 2,
    }).execute()

    if not result.data:
        pytest.fail("Failed to seed owner holdings")

    yield {
        "owner": owner_user_id,
        "requester": requester_user_id,
        "card_id": sample_card_id,
    }


@pytest.fixture(scope="session")
def anon_client(setup_test_environment, reset_database) -> Client:
    """Client holding the public anon key, as a browser would."""
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("ANON_KEY") or os.getenv("SUPABASE_ANON_KEY")

    if not url or not key:
        pytest.skip("SUPABASE_URL and ANON_KEY must be set in .env.test")

    return create_client(url, key)
