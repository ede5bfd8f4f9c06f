import json
import logging
import pathlib
from dataclasses import replace
from typing import Any, Dict, List, Optional, Set

from .errors import InheritanceCycle, InvalidVersionConfig, NetworkFailure, VersionNotFound
from .fetcher import ArtifactFetcher, file_exists, read_json, write_text
from .models import VersionCatalog, VersionConfig

log = logging.getLogger(__name__)

MAX_INHERITANCE_DEPTH = 16


def merge_configs(child: VersionConfig, parent: VersionConfig) -> VersionConfig:
    """Merges a version (child) inheriting from a base version (parent).

    Libraries are the parent's followed by the child's, in order and without
    de-duplication. Every other field prefers the child's value. Neither
    argument is mutated.
    """
    log.info(f"Merging version configs: {child.id} inheriting from {parent.id}")
    return replace(
        child,
        inherits_from=None,
        type=child.type or parent.type,
        main_class=child.main_class or parent.main_class,
        assets=child.assets or parent.assets,
        asset_index=child.asset_index or parent.asset_index,
        libraries=list(parent.libraries) + list(child.libraries),
        client_download=child.client_download or parent.client_download,
        legacy_arguments=child.legacy_arguments or parent.legacy_arguments,
    )


def validate_config(config: VersionConfig) -> VersionConfig:
    missing = []
    if not config.main_class:
        missing.append('mainClass')
    if not config.assets and config.asset_index is None:
        missing.append('assets')
    if not config.libraries:
        missing.append('libraries')
    if missing:
        raise InvalidVersionConfig(f"Version {config.id} is missing {', '.join(missing)} after inheritance")
    return config


def installed_versions(versions_dir: pathlib.Path) -> Set[str]:
    """Ids of the version directories holding their client jar."""
    if not versions_dir.is_dir():
        return set()
    return {
        entry.name for entry in versions_dir.iterdir()
        if entry.is_dir() and (entry / f"{entry.name}.jar").is_file()
    }


class VersionConfigResolver:
    """Finds version descriptors and resolves their inheritance chain.

    Descriptors come from the remote version catalog first, then from the
    local ``versions/<id>/<id>.json`` (third-party and modified versions are
    never listed in the catalog). The catalog is kept once fetched.
    """

    def __init__(self, fetcher: ArtifactFetcher, versions_dir: pathlib.Path, manifest_url: str):
        self.fetcher = fetcher
        self.versions_dir = versions_dir
        self.manifest_url = manifest_url
        self._catalog: Optional[VersionCatalog] = None

    def descriptor_path(self, version_id: str) -> pathlib.Path:
        return self.versions_dir / version_id / f"{version_id}.json"

    async def fetch_catalog(self) -> Optional[VersionCatalog]:
        """The remote catalog, or None while it cannot be fetched.

        Only a successful fetch is cached, a failed one is retried on the next
        call.
        """
        if self._catalog is None:
            try:
                self._catalog = VersionCatalog.from_json(await self.fetcher.fetch_json(self.manifest_url))
            except NetworkFailure as e:
                log.warning(f"Could not fetch version catalog, only local versions are available: {e}")
        return self._catalog

    async def fetch_descriptor(self, version_id: str) -> Dict[str, Any]:
        catalog = await self.fetch_catalog()
        entry = catalog.get(version_id) if catalog else None
        path = self.descriptor_path(version_id)

        if entry is not None:
            log.info(f"Fetching version descriptor for {version_id}")
            try:
                data = await self.fetcher.fetch_json(entry.url)
            except NetworkFailure as e:
                if not await file_exists(path):
                    raise
                log.warning(f"Could not download descriptor {version_id}, using local copy: {e}")
            else:
                await write_text(path, json.dumps(data, indent=2))
                return data

        if await file_exists(path):
            log.info(f"Loading local version descriptor: {path}")
            try:
                return await read_json(path)
            except json.JSONDecodeError as e:
                raise InvalidVersionConfig(f"Invalid JSON in {path}: {e}") from e

        raise VersionNotFound(version_id)

    async def resolve(self, version_id: str) -> VersionConfig:
        """Resolves ``version_id`` with its whole inheritance chain merged in."""
        config = await self._resolve_chain(version_id, [])
        return validate_config(config)

    async def _resolve_chain(self, version_id: str, chain: List[str]) -> VersionConfig:
        if version_id in chain:
            raise InheritanceCycle(chain + [version_id])
        if len(chain) >= MAX_INHERITANCE_DEPTH:
            raise InheritanceCycle(chain + [version_id])

        data = await self.fetch_descriptor(version_id)
        if not isinstance(data, dict):
            raise InvalidVersionConfig(f"Version descriptor {version_id} is not a JSON object")
        config = VersionConfig.from_json({**data, 'id': data.get('id') or version_id})

        if not config.inherits_from:
            return config

        parent = await self._resolve_chain(config.inherits_from, chain + [version_id])
        return merge_configs(config, parent)
