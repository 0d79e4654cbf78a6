"""Tests for application wiring and lifespan."""

from unittest.mock import AsyncMock

import pytest

from tokengate.main import create_app, lifespan
from tokengate.services.revocation import InMemoryRevocationStore, RedisRevocationStore


def test_default_store_is_in_memory():
    app = create_app()

    assert isinstance(app.state.revocations, InMemoryRevocationStore)
    assert app.state.redis is None
    assert app.state.authenticator.revocations is app.state.revocations


def test_redis_store_when_configured(monkeypatch):
    monkeypatch.setattr("tokengate.main.settings.redis_url", "redis://localhost:6379/0")

    app = create_app()

    assert isinstance(app.state.revocations, RedisRevocationStore)
    assert app.state.redis is app.state.revocations.client


def test_injected_dependencies_used(signing_keys, hasher, revocation_store):
    app = create_app(signing_keys=signing_keys, revocation_store=revocation_store, hasher=hasher)

    assert app.state.keys is signing_keys
    assert app.state.hasher is hasher
    assert app.state.revocations is revocation_store


@pytest.mark.asyncio
async def test_lifespan_closes_redis():
    app = create_app()
    client = AsyncMock()
    client.ping.return_value = True
    app.state.redis = client

    async with lifespan(app):
        client.ping.assert_awaited_once()

    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_lifespan_with_in_memory_store():
    app = create_app()

    async with lifespan(app):
        pass
