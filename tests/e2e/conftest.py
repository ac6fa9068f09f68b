"""
E2E test configuration.

These tests use REAL Salesforce connections - no mocking.
"""

import pytest

from sfclient.config import SFConfig, connect
from sfclient.exceptions import MissingCredentialsError


@pytest.fixture(scope="session")
def live_conn():
    """A Connection built from SF_* variables (or .env); skips when they are missing."""
    cfg = SFConfig.from_env()
    try:
        return connect(cfg)
    except MissingCredentialsError as e:
        pytest.skip(f"Missing credentials: {', '.join(e.missing)}")
