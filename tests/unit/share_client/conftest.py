"""Fixtures wiring share_client to an in-process OCS server."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from ocs_fakes import ACCOUNT, FakeOcsServer
from share_client.account import Account
from share_client.manager import ShareManager
from share_client.ocs.client import OcsClient
from share_client.ocs.share_api import ShareApi


@pytest.fixture
def account() -> Account:
    return ACCOUNT


@pytest.fixture
def ocs_server() -> FakeOcsServer:
    return FakeOcsServer()


@pytest_asyncio.fixture
async def http_client(ocs_server):
    transport = httpx.MockTransport(ocs_server.handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def share_api(http_client, account) -> ShareApi:
    return ShareApi(OcsClient(account, http_client=http_client))


@pytest.fixture
def manager(share_api) -> ShareManager:
    return ShareManager(share_api)
