"""Pytest configuration and fixtures."""

import os

import pytest

from context_engine.core.config import EngineConfig
from tests.fakes.fake_supabase import FakeSupabase
from tests.fakes.knowledge_base import BILLING_VECTOR, SECURITY_VECTOR, sample_corpus


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["ENGINE_ENV"] = "test"


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(openai_api_key="test-openai-key", embedding_dim=3, top_k=5)


@pytest.fixture
def corpus() -> list[dict]:
    return sample_corpus()


@pytest.fixture
def store(corpus) -> FakeSupabase:
    """Fake store whose embed RPC maps billing text to the billing direction."""

    def embed(text: str) -> list[float]:
        lowered = text.lower()
        if "refund" in lowered or "invoice" in lowered:
            return BILLING_VECTOR
        return SECURITY_VECTOR

    return FakeSupabase({"knowledge_base_articles": corpus}, rpc_handlers={"embed": embed})
