import hashlib
import io
import zipfile
from collections import Counter

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from mcbootstrap.fetcher import ArtifactFetcher


def sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def make_jar(entries: dict) -> bytes:
    """Builds an in-memory zip from ``{name: bytes}``; names ending in '/' are directories."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as jar:
        for name, data in entries.items():
            if name.endswith('/'):
                jar.writestr(zipfile.ZipInfo(name), b'')
            else:
                jar.writestr(name, data)
    return buffer.getvalue()


class FakeRemote:
    """Local HTTP server standing in for the remote repositories."""

    def __init__(self):
        self.files = {}
        self.hits = Counter()
        # path -> number of requests still answered with a corrupted body
        self.corrupt = Counter()
        # path -> number of requests still answered with HTTP 500
        self.fail = Counter()
        self.server = None
        self.app = web.Application()
        self.app.router.add_route('GET', '/{tail:.*}', self._handle)

    async def _handle(self, request):
        path = request.path
        self.hits[path] += 1
        if path not in self.files:
            raise web.HTTPNotFound()
        if self.fail[path] > 0:
            self.fail[path] -= 1
            raise web.HTTPInternalServerError()
        if self.corrupt[path] > 0:
            self.corrupt[path] -= 1
            return web.Response(body=b'corrupted payload')
        return web.Response(body=self.files[path])

    def add(self, path: str, data: bytes) -> str:
        self.files[path] = data
        return self.url(path)

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    @property
    def total_hits(self) -> int:
        return sum(self.hits.values())


@pytest_asyncio.fixture
async def remote():
    fake = FakeRemote()
    server = TestServer(fake.app)
    await server.start_server()
    fake.server = server
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def http_session():
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture
def fetcher(http_session):
    return ArtifactFetcher(http_session, retry_delay=0)
