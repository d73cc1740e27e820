"""
Core pytest configuration for the entire test suite.

This module provides only the settings/app wiring needed across ALL areas of tests
(exceptions, validators, api, logging). Area-specific helpers live next to the tests
that use them.

Tests never talk to a real database or network service: driver errors and network
failures are simulated with small fake exception classes carrying the same attributes
the real drivers set (sqlstate, diag, sqlite_errorname, errno...).
"""

from __future__ import annotations

# -------------------------------
# Standard library imports
# -------------------------------
import logging
from typing import Iterator

# -------------------------------
# Early logging tuning (IMPORTANT)
# -------------------------------
# Set the level for noisy third-party loggers at import time, before the labops modules
# (and the libraries they import) are loaded, to keep pytest collection quiet.
NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "asyncio",
    "httpx",
    "urllib3",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

# -------------------------------
# Third-party / project imports
# -------------------------------
import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from labops.config.settings import Settings, get_settings
from labops.exceptions.classifier import get_default_classifier
from labops.main import create_app

# Environment every test runs with unless it overrides a variable itself.
TEST_ENV = {
    "ENV": "testing",
    "LOG_LEVEL": "INFO",
    "LOG_FORMAT": "json",
    "LOG_TO_STDOUT": "true",
    "LOG_USE_QUEUE": "false",
    "DB_BACKEND": "postgresql",
    "REQUEST_ID_HEADER": "X-Request-ID",
}


def _clear_caches() -> None:
    get_settings.cache_clear()
    get_default_classifier.cache_clear()


# ------------------------------------------------------------------------------------------------
# SETTINGS
# ------------------------------------------------------------------------------------------------

@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[Settings]:
    """
    Fresh Settings built from TEST_ENV.

    `get_settings()` and `get_default_classifier()` are lru-cached; both caches are cleared
    before and after the test so an ENV override in one test never leaks into the next.
    """
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    _clear_caches()
    yield get_settings()
    _clear_caches()


@pytest.fixture()
def production_settings(monkeypatch: pytest.MonkeyPatch, settings: Settings) -> Settings:
    """Same as `settings` but with ENV=production (opaque internal errors)."""
    monkeypatch.setenv("ENV", "production")
    _clear_caches()
    return get_settings()


# ------------------------------------------------------------------------------------------------
# APPLICATION
# ------------------------------------------------------------------------------------------------

@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    """
    Application built by the real factory.

    Tests add their own throwaway routes to it (`@app.get(...)`) to exercise the
    pipeline; the routes are registered after the exception handlers and the
    RequestIDMiddleware, exactly like the production routers.
    """
    return create_app(settings)


@pytest.fixture()
def production_app(production_settings: Settings) -> FastAPI:
    return create_app(production_settings)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    # raise_server_exceptions=False: errors answered by the server-error middleware
    # (the `Exception` handler) are re-raised by Starlette after the response is sent;
    # the client must return that response instead of re-raising in the test.
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture()
def production_client(production_app: FastAPI) -> Iterator[TestClient]:
    with TestClient(production_app, raise_server_exceptions=False) as test_client:
        yield test_client


r"""
# ====================================================================
# Why do the fixtures build a new app per test?
# ====================================================================

`create_app(settings)` installs logging (dictConfig), the classifier and the middleware
from the Settings it receives. Building a fresh app per test:

| Concern                           | Effect                                              |
| --------------------------------- | --------------------------------------------------- |
| routes added inside a test        | never leak into another test                        |
| ENV override (production/testing) | picked up by the classifier (`expose_internal`)     |
| caplog                            | dictConfig runs during fixture setup, so pytest's   |
|                                   | capture handler is (re)attached for the test call   |
"""
