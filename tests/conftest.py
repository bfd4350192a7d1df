from datetime import datetime, timedelta, timezone

import pytest

from authcore.core.config import TokenConfig
from authcore.domain.tokens.schemas import Subject
from authcore.repositories.refresh_token_repo import InMemoryRefreshTokenStore
from authcore.services.revocation_ledger import RevocationLedger
from authcore.services.token_service import TokenLifecycleManager

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


class FakeClock:
    """Reloj controlable: `clock()` devuelve el instante actual, `advance()` lo mueve."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryRefreshTokenStore()


@pytest.fixture
def ledger(store, clock):
    return RevocationLedger(store, clock=clock)


def make_config(**overrides) -> TokenConfig:
    base = dict(
        access_secret=ACCESS_SECRET,
        refresh_secret=REFRESH_SECRET,
        issuer="authcore-test",
        audience="authcore-test-users",
        access_ttl_seconds=15 * 60,
        refresh_ttl_seconds=7 * 24 * 3600,
        verification_ttl_seconds=10 * 60,
        reset_ttl_seconds=60 * 60,
    )
    base.update(overrides)
    return TokenConfig(**base)


@pytest.fixture
def make_manager(store, clock):
    def _make(store_override=None, **overrides) -> TokenLifecycleManager:
        target = store_override if store_override is not None else store
        return TokenLifecycleManager(make_config(**overrides), RevocationLedger(target, clock=clock), clock=clock)

    return _make


@pytest.fixture
def manager(make_manager):
    return make_manager()


@pytest.fixture
def subject():
    return Subject(subject_id="u1", email="u1@example.com", role="writer")
