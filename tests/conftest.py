"""
Shared fixtures for the PatientSync test suite.

Controllers and the repository are tested against an AsyncMock gateway;
the gateway itself is tested against httpx transports (canned responses or
the in-process development API), so nothing touches the network.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from patientsync.client.gateway import RemoteGateway
from patientsync.devserver.app import create_app
from patientsync.devserver.store import RecordStore
from patientsync.store.repository import RecordRepository


@pytest.fixture
def gateway():
    """Gateway double: every operation is an AsyncMock."""
    return AsyncMock(spec=RemoteGateway)


@pytest.fixture
def repository(gateway):
    return RecordRepository(gateway)


@pytest.fixture
def record_store():
    return RecordStore()


@pytest.fixture
def dev_app(record_store):
    return create_app(record_store)


@pytest.fixture
def test_client(dev_app):
    """FastAPI TestClient over a fresh development API."""
    from fastapi.testclient import TestClient
    return TestClient(dev_app)


@pytest_asyncio.fixture
async def api_gateway(dev_app):
    """A real RemoteGateway wired to the development API in-process."""
    transport = httpx.ASGITransport(app=dev_app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver/api"
    ) as client:
        yield RemoteGateway(client=client)
