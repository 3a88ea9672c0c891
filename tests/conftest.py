"""Shared fixtures: the local test site and scan options pointing at it."""

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer

from tests.target_app import create_target_app
from weaver.config import ScanOptions
from weaver.scanner.core.url import normalize_url


@pytest_asyncio.fixture
async def target_server():
    """Serve the test site on a random local port."""
    server = TestServer(create_target_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def site_url(target_server):
    """Normalized absolute URL of a path on the test site."""
    def _url(path: str = '/') -> str:
        return normalize_url(str(target_server.make_url(path)))
    return _url


@pytest.fixture
def make_options(site_url):
    """ScanOptions from the testing profile, seeded at a path of the test site."""
    def _make(path: str = '/', **overrides) -> ScanOptions:
        return ScanOptions.from_config('testing', url=site_url(path), **overrides)
    return _make
