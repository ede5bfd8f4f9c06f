import asyncio
import hashlib
import json
import logging
import pathlib
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os
import aiohttp

from .errors import IntegrityFailure, NetworkFailure

log = logging.getLogger(__name__)

CHUNK_SIZE = 8192
DOWNLOAD_ATTEMPTS = 3
RETRY_DELAY = 0.5


async def get_file_sha1(file_path: pathlib.Path) -> str:
    """Calculates the SHA1 hash of a file asynchronously."""
    sha1_hash = hashlib.sha1()
    async with aiofiles.open(file_path, 'rb') as f:
        while True:
            chunk = await f.read(CHUNK_SIZE)
            if not chunk:
                break
            sha1_hash.update(chunk)
    return sha1_hash.hexdigest()


async def file_exists(file_path: pathlib.Path) -> bool:
    """Checks if a regular file exists asynchronously."""
    return await aiofiles.os.path.isfile(file_path)


async def is_verified(file_path: pathlib.Path, expected_sha1: Optional[str]) -> bool:
    """A file is verified when it exists and, if a hash is known, matches it."""
    if not await file_exists(file_path):
        return False
    if not expected_sha1:
        return True
    return (await get_file_sha1(file_path)).lower() == expected_sha1.lower()


async def _remove_quietly(path: pathlib.Path):
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass


class ArtifactFetcher:
    """Downloads files into place and verifies their SHA1.

    The ``aiohttp.ClientSession`` is injected and owned by the caller, which
    is responsible for closing it.
    """

    def __init__(self, session: aiohttp.ClientSession, attempts: int = DOWNLOAD_ATTEMPTS,
                 retry_delay: float = RETRY_DELAY):
        if attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {attempts}")
        self.session = session
        self.attempts = attempts
        self.retry_delay = retry_delay

    async def fetch(self, url: str, dest_path: pathlib.Path, expected_sha1: Optional[str] = None):
        """Streams ``url`` to ``dest_path`` and checks its hash on the fly.

        Raises ``NetworkFailure`` on a non-2xx status or transport error and
        ``IntegrityFailure`` on a hash mismatch, in which case the written
        file is removed.
        """
        await aiofiles.os.makedirs(dest_path.parent, exist_ok=True)
        sha1_hash = hashlib.sha1()
        try:
            async with self.session.get(url, allow_redirects=True) as response:
                if not response.ok:
                    raise NetworkFailure(url, response.status, response.reason or '')
                async with aiofiles.open(dest_path, 'wb') as f:
                    async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                        sha1_hash.update(chunk)
                        await f.write(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await _remove_quietly(dest_path)
            raise NetworkFailure(url, reason=str(e) or type(e).__name__) from e

        if expected_sha1:
            actual = sha1_hash.hexdigest()
            if actual.lower() != expected_sha1.lower():
                await _remove_quietly(dest_path)
                raise IntegrityFailure(dest_path, expected_sha1, actual)

    async def fetch_verified(self, url: str, dest_path: pathlib.Path, expected_sha1: Optional[str]) -> bool:
        """Ensures ``dest_path`` holds a verified copy of ``url``.

        Returns False when the file was already present and valid, True when
        it had to be downloaded. Each attempt writes to a temporary sibling
        that only replaces the destination once verified.
        """
        if await is_verified(dest_path, expected_sha1):
            return False

        if await file_exists(dest_path):
            log.warning(f"SHA1 mismatch for existing file {dest_path.name}. Redownloading.")

        temp_path = dest_path.with_name(dest_path.name + '.part')
        last_error: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                await self.fetch(url, temp_path, expected_sha1)
                await aiofiles.os.replace(temp_path, dest_path)
                return True
            except (NetworkFailure, IntegrityFailure) as e:
                last_error = e
                await _remove_quietly(temp_path)
                log.warning(f"Attempt {attempt}/{self.attempts} failed for {url}: {e}")
                if attempt < self.attempts:
                    await asyncio.sleep(self.retry_delay * attempt)

        raise last_error

    async def fetch_text(self, url: str) -> str:
        try:
            async with self.session.get(url, allow_redirects=True) as response:
                if not response.ok:
                    raise NetworkFailure(url, response.status, response.reason or '')
                return await response.text(encoding='utf-8')
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkFailure(url, reason=str(e) or type(e).__name__) from e

    async def fetch_json(self, url: str) -> Any:
        text = await self.fetch_text(url)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise NetworkFailure(url, reason=f"invalid JSON: {e}") from e


class PathLocks:
    """One ``asyncio.Lock`` per destination path, so that concurrent tasks
    never write the same file at the same time."""

    def __init__(self):
        self._locks: Dict[pathlib.Path, asyncio.Lock] = {}

    def __call__(self, path: pathlib.Path) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return lock


async def gather_bounded(coroutines, concurrency: int) -> list:
    """Awaits ``coroutines`` with at most ``concurrency`` running at once.

    Results keep the input order. With a concurrency of one, coroutines run
    strictly one after the other.
    """
    if concurrency <= 1:
        return [await coro for coro in coroutines]

    semaphore = asyncio.Semaphore(concurrency)

    async def run(coro):
        async with semaphore:
            return await coro

    return await asyncio.gather(*(run(coro) for coro in coroutines))


async def write_text(path: pathlib.Path, content: str):
    """Writes a text file, creating its directory first."""
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    async with aiofiles.open(path, 'w', encoding='utf-8') as f:
        await f.write(content)


async def read_json(path: pathlib.Path) -> Any:
    async with aiofiles.open(path, 'r', encoding='utf-8') as f:
        return json.loads(await f.read())