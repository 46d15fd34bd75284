"""Shared pytest fixtures for the vatcheck test suite."""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vatcheck.interfaces.vat_provider import IVatProvider
from vatcheck.models.verification import (
    PersistedRecord,
    VerificationQuery,
    VerificationResult,
)
from vatcheck.utils.logging import configure_logging


@pytest.fixture(autouse=True, scope="session")
def _quiet_logging() -> None:
    """Send structlog output to stderr so stdout assertions only see results."""
    configure_logging(log_level="WARNING", stream=sys.stderr)


# Fixed "now" used by clock-driven tests: 2025-11-15T10:00:00Z.
FIXED_NOW = 1763200800.0


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_result() -> VerificationResult:
    """A valid Spanish verification as VIES would return it."""
    return VerificationResult(
        valid=True,
        name="ACME SOLUCIONES SL",
        address="CALLE MAYOR 1, 28013 MADRID",
        request_date="2025-11-15",
        vat_number="B12345678",
        country_code="ES",
        api_source="VIES_SOAP",
    )


@pytest.fixture
def sample_query() -> VerificationQuery:
    return VerificationQuery(vat_number="B12345678", country_code="ES")


@pytest.fixture
def make_record(sample_query: VerificationQuery, sample_result: VerificationResult):
    """Factory for persisted records verified at a given UNIX time."""

    def _make(verified_at: float = FIXED_NOW, **overrides: Any) -> PersistedRecord:
        record = PersistedRecord.from_result(
            sample_query,
            sample_result,
            verified_at=datetime.fromtimestamp(verified_at, tz=timezone.utc),  # noqa: UP017
        )
        return record.model_copy(update=overrides) if overrides else record

    return _make


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_provider() -> Callable[..., MagicMock]:
    """Factory for mock IVatProvider instances.

    Pass ``result`` for a provider that answers, or ``error`` for one that
    raises.  ``verify`` is an AsyncMock so calls can be asserted.
    """

    def _make(
        name: str = "MOCK",
        *,
        result: VerificationResult | None = None,
        error: BaseException | None = None,
        available: bool = True,
        free: bool = True,
    ) -> MagicMock:
        provider = MagicMock(spec=IVatProvider)
        provider.get_provider_name.return_value = name
        provider.is_available.return_value = available
        provider.is_free.return_value = free
        provider.verify = AsyncMock(return_value=result, side_effect=error)
        provider.aclose = AsyncMock()
        return provider

    return _make


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def http_client_factory():
    """Build ``httpx.AsyncClient`` instances backed by ``httpx.MockTransport``.

    MockTransport opens no sockets, so the clients need no teardown.
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make
