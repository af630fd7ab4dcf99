"""Pytest configuration and fixtures."""

import os

import pytest

TEST_ENV = {
    "SUPABASE_URL": "https://test.supabase.co",
    "SUPABASE_SERVICE_ROLE_KEY": "test-key",
    "OPENAI_API_KEY": "test-openai-key",
    "ORACLE_ENV": "test",
    "KNOWLEDGE_SEARCH_ENABLED": "false",
    "BRIDGE_SIGNING_SECRET": "test-bridge-secret",
}

# Module imports read settings, so seed before collection too
for _key, _value in TEST_ENV.items():
    os.environ.setdefault(_key, _value)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ.update(TEST_ENV)
