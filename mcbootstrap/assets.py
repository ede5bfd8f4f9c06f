import asyncio
import json
import logging
import pathlib
import posixpath
import shutil
from typing import Optional

import aiofiles.os

from .errors import NetworkFailure
from .fetcher import ArtifactFetcher, PathLocks, file_exists, gather_bounded, is_verified, read_json, write_text
from .models import AssetIndex, decode_asset_index

log = logging.getLogger(__name__)


def object_relpath(asset_hash: str) -> str:
    """Content-addressed location of an object: ``objects/ab/abcdef...``."""
    return f"objects/{asset_hash[:2]}/{asset_hash}"


class AssetSyncEngine:
    """Keeps the asset store in sync with an asset index.

    Objects live in the content-addressed ``objects/`` store and are copied
    to ``assets/<logical path>`` where older clients read them directly.
    """

    def __init__(self, fetcher: ArtifactFetcher, assets_dir: pathlib.Path, resources_url: str):
        self.fetcher = fetcher
        self.assets_dir = assets_dir
        self.resources_url = resources_url if resources_url.endswith('/') else resources_url + '/'
        self.downloaded = 0
        self.present = 0
        self._locks = PathLocks()

    def index_path(self, index_id: str) -> pathlib.Path:
        return self.assets_dir / 'indexes' / f"{index_id}.json"

    def object_path(self, asset_hash: str) -> pathlib.Path:
        return self.assets_dir / object_relpath(asset_hash)

    def object_url(self, asset_hash: str) -> str:
        return f"{self.resources_url}{asset_hash[:2]}/{asset_hash}"

    def logical_path(self, logical_path: str) -> pathlib.Path:
        normalized = posixpath.normpath(logical_path)
        if normalized.startswith('../') or normalized == '..' or posixpath.isabs(normalized):
            raise ValueError(f"Asset path escapes the assets directory: {logical_path}")
        return self.assets_dir / normalized

    async def fetch_index(self, url: str, index_id: str, sha1: Optional[str] = None) -> AssetIndex:
        """Downloads the asset index, keeps a copy under ``indexes/`` and decodes it.

        When the index cannot be downloaded, a previously persisted copy is
        used instead.
        """
        path = self.index_path(index_id)
        try:
            if sha1:
                await self.fetcher.fetch_verified(url, path, sha1)
            else:
                await write_text(path, await self.fetcher.fetch_text(url))
        except NetworkFailure as e:
            if not await file_exists(path):
                raise
            log.warning(f"Could not download asset index {index_id}, using local copy: {e}")

        try:
            data = await read_json(path)
        except json.JSONDecodeError as e:
            await aiofiles.os.remove(path)
            raise NetworkFailure(url, reason=f"invalid asset index JSON: {e}") from e
        return decode_asset_index(data)

    async def sync_asset(self, logical_path: str, asset_hash: str) -> bool:
        """Ensures one asset is in the object store and its logical location.

        Returns True when the object had to be downloaded.
        """
        target = self.logical_path(logical_path)
        obj = self.object_path(asset_hash)
        async with self._locks(obj):
            downloaded = await self.fetcher.fetch_verified(self.object_url(asset_hash), obj, asset_hash)
        if downloaded:
            self.downloaded += 1
        else:
            self.present += 1

        async with self._locks(target):
            if not await is_verified(target, asset_hash):
                await aiofiles.os.makedirs(target.parent, exist_ok=True)
                loop = asyncio.get_running_loop()
                # Copy, the object may be shared by other logical paths.
                await loop.run_in_executor(None, shutil.copyfile, obj, target)
        return downloaded

    async def sync_all(self, index: AssetIndex, concurrency: int = 1, progress=None) -> int:
        """Syncs every asset of ``index``. Returns the number of downloads."""

        async def sync_one(logical_path, asset_hash):
            downloaded = await self.sync_asset(logical_path, asset_hash)
            if progress is not None:
                progress.update(1)
            return downloaded

        results = await gather_bounded(
            (sync_one(path, asset_hash) for path, asset_hash in index.items()), concurrency)
        return sum(1 for downloaded in results if downloaded)
