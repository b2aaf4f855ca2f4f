"""
Pytest fixtures for the settlement test suite.

Provides:
- Structured logging configured for every test session
- LogContext isolation between tests
- ``captured_logs`` for asserting on emitted JSON log records
- ``settings`` / ``service`` built from the default settings file
"""

import json
import logging
from io import StringIO

import pytest

from settlement_config import DEFAULT_SETTINGS_PATH, load_settings
from settlement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from settlement_services import SettlementService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture settlement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            planner.plan(balances)
            logs = captured_logs()
            assert any(r["message"] == "settlement_plan_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("settlement_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Settings and service
# =============================================================================


@pytest.fixture
def settings():
    return load_settings(DEFAULT_SETTINGS_PATH)


@pytest.fixture
def service(settings):
    return SettlementService(settings)
