"""
Test configuration and fixtures.

Provides:
- in-memory stores (tests/fakes.py) wired into the services
- account factories going through the real registration path
- HTTPX AsyncClient against the app with get_stores overridden
"""
import os

# Diagnostics and non-secure cookies are only on in development
os.environ["APP_ENV"] = "development"

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from config import COOKIE_NAME
from db import get_stores
from main import app
from security import create_token
from services.accounts import AccountService, RegistrationForm
from services.identity import PartitionedIdentityStore
from services.messaging import ConversationService
from services.migration import RoleMigration
from services.resolver import CrossPartitionResolver
from tests.fakes import memory_stores


# =============================================================================
# Stores and services
# =============================================================================

@pytest.fixture
def stores():
    return memory_stores()


@pytest.fixture
def identities(stores) -> PartitionedIdentityStore:
    return PartitionedIdentityStore(tradesmen=stores.tradesmen, customers=stores.customers)


@pytest.fixture
def resolver(stores, identities) -> CrossPartitionResolver:
    return CrossPartitionResolver(identities, stores.profiles)


@pytest.fixture
def accounts(identities) -> AccountService:
    return AccountService(identities)


@pytest.fixture
def migration(stores, identities) -> RoleMigration:
    return RoleMigration(identities, stores.profiles)


@pytest.fixture
def make_conversations(stores, identities):
    """
    A fresh ConversationService per call, like one per request in the app,
    so resolver caches never leak between steps of a test.
    """
    def _make(allow_unresolved: bool = False) -> ConversationService:
        resolver = CrossPartitionResolver(identities, stores.profiles)
        return ConversationService(stores.conversations, stores.messages, resolver, allow_unresolved=allow_unresolved)

    return _make


@pytest.fixture
def register(accounts):
    """Create an account through AccountService.register."""
    counter = {"n": 0}

    async def _register(name: str, role: str = "customer", phone: str | None = None, password: str = "secret123"):
        counter["n"] += 1
        form = RegistrationForm(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            password=password,
            phone=phone or f"91000000{counter['n']:02d}",
            role=role,
            city="Pune",
        )
        return await accounts.register(form)

    return _register


# =============================================================================
# HTTP client fixtures
# =============================================================================

@pytest.fixture
async def client(stores) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client; every request sees the same in-memory stores."""
    app.dependency_overrides[get_stores] = lambda: stores

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Cookie header a logged-in browser would send for this account."""
    def _headers(account) -> dict:
        return {"Cookie": f"{COOKIE_NAME}={create_token(account.id, account.email, account.role)}"}

    return _headers
