"""
Global pytest configuration and fixtures for recurring billing tests.
"""

import os

import pytest

# Keep tests independent of any local .env
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("CELERY__BROKER_URL", "memory://")
os.environ.setdefault("CELERY__RESULT_BACKEND", "cache+memory://")

from recurring_billing.billing.config import BillingConfig, set_billing_config  # noqa: E402
from recurring_billing.events import set_event_bus  # noqa: E402


@pytest.fixture(autouse=True)
def billing_config():
    """Default billing configuration, reset after each test."""
    config = BillingConfig()
    set_billing_config(config)
    yield config
    set_billing_config(None)


@pytest.fixture(autouse=True)
def reset_event_bus():
    yield
    set_event_bus(None)
