"""Pytest configuration and fixtures for backend tests.

Tests run against an in-memory SQLite database (aiosqlite + StaticPool) and
the in-process revocation store. Redis-backed behavior is tested with a
mocked client.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("REDIS_URL", None)
os.environ.pop("TOKEN_SIGNING_KEY", None)
# Cheap Argon2 parameters keep the suite fast
os.environ["PASSWORD_HASH_TIME_COST"] = "1"
os.environ["PASSWORD_HASH_MEMORY_COST"] = "1024"
os.environ["PASSWORD_HASH_PARALLELISM"] = "1"

from tokengate.core.database import Base, get_db  # noqa: E402
from tokengate.models import Account, AccountPasswordHash  # noqa: E402
from tokengate.services import (  # noqa: E402
    AccountRepository,
    AuthService,
    InMemoryRevocationStore,
    PasswordHasher,
    SigningKeyPair,
    TokenCodec,
)

TEST_EMAIL = "jane@example.com"
TEST_PASSWORD = "correct-horse-battery"
TEST_FULL_NAME = "Jane Doe"


class FakeClock:
    """Manually advanced wall clock (epoch seconds) for the in-memory store."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAccountLookup:
    """Dict-backed account lookup for service tests that don't need a database."""

    def __init__(self, *accounts: Account):
        self.accounts = {account.id: account for account in accounts}

    async def find_by_email(self, email: str) -> Account | None:
        email = email.strip().lower()
        return next((a for a in self.accounts.values() if a.email == email), None)

    async def find_by_id(self, account_id: uuid.UUID) -> Account | None:
        return self.accounts.get(account_id)


def make_account(
    hasher: PasswordHasher,
    email: str = TEST_EMAIL,
    password: str | None = TEST_PASSWORD,
    active: bool = True,
) -> Account:
    """Build a transient account with an optional password hash."""
    account = Account(id=uuid.uuid4(), full_name=TEST_FULL_NAME, email=email, active=active)
    if password is not None:
        account.password_hash = AccountPasswordHash(pass_hashed=hasher.hash(password))
    else:
        account.password_hash = None
    return account


# --- Crypto and storage fixtures ---


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture(scope="session")
def signing_keys() -> SigningKeyPair:
    return SigningKeyPair.generate()


@pytest.fixture
def codec(signing_keys: SigningKeyPair) -> TokenCodec:
    return TokenCodec(signing_keys)


@pytest.fixture
def revocation_store() -> InMemoryRevocationStore:
    return InMemoryRevocationStore()


@pytest.fixture
def account(hasher: PasswordHasher) -> Account:
    return make_account(hasher)


@pytest.fixture
def account_lookup(account: Account) -> FakeAccountLookup:
    return FakeAccountLookup(account)


@pytest.fixture
def auth_service(
    account_lookup: FakeAccountLookup,
    revocation_store: InMemoryRevocationStore,
    codec: TokenCodec,
    hasher: PasswordHasher,
) -> AuthService:
    return AuthService(
        account_lookup,
        revocation_store,
        codec,
        hasher,
        access_lifetime=timedelta(hours=1),
        refresh_lifetime=timedelta(days=1),
    )


# --- Database fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def stored_account(db_session: AsyncSession, hasher: PasswordHasher) -> Account:
    """Persisted active account with TEST_EMAIL / TEST_PASSWORD."""
    repository = AccountRepository(db_session)
    account = Account(full_name=TEST_FULL_NAME, email=TEST_EMAIL, active=True)
    return await repository.create(account, hasher.hash(TEST_PASSWORD))


# --- HTTP client fixtures ---


@pytest.fixture
def app(
    signing_keys: SigningKeyPair,
    revocation_store: InMemoryRevocationStore,
    hasher: PasswordHasher,
):
    from tokengate.main import create_app

    return create_app(
        signing_keys=signing_keys,
        revocation_store=revocation_store,
        hasher=hasher,
    )


@pytest_asyncio.fixture(scope="function")
async def async_client(app, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def auth_tokens(async_client: AsyncClient, stored_account: Account) -> dict:
    """Log the stored account in on a fresh device and return the token response."""
    response = await async_client.post(
        "/auth/account/authorization",
        json={
            "email": TEST_EMAIL,
            "password": TEST_PASSWORD,
            "device_id": str(uuid.uuid4()),
        },
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def auth_headers(auth_tokens: dict) -> dict[str, str]:
    """Headers with a bearer access token for authenticated requests."""
    return {"Authorization": f"Bearer {auth_tokens['access_token']}"}
