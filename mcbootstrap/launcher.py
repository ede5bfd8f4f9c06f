import asyncio
import logging
import pathlib
import sys
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple

import aiohttp
from tqdm.asyncio import tqdm

from . import __version__
from .assets import AssetSyncEngine
from .command import LaunchCommandBuilder
from .config import LauncherConfig
from .errors import InvalidVersionConfig
from .fetcher import ArtifactFetcher
from .java import find_java
from .libraries import LibraryResolver
from .models import AssetIndex, InstallReport, Session, VersionConfig
from .natives import NativeExtractor
from .process import LineSink, run_process
from .rules import Environment
from .versions import VersionConfigResolver, installed_versions

log = logging.getLogger(__name__)

HTTP_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=120)


@dataclass(frozen=True)
class GameDirectory:
    """On-disk layout of a game directory."""
    root: pathlib.Path

    @property
    def versions(self) -> pathlib.Path:
        return self.root / 'versions'

    @property
    def libraries(self) -> pathlib.Path:
        return self.root / 'libraries'

    @property
    def assets(self) -> pathlib.Path:
        return self.root / 'assets'

    def version_dir(self, version_id: str) -> pathlib.Path:
        return self.versions / version_id

    def client_jar(self, version_id: str) -> pathlib.Path:
        return self.version_dir(version_id) / f"{version_id}.jar"

    def natives_dir(self, version_id: str) -> pathlib.Path:
        return self.version_dir(version_id) / f"{version_id}-natives"


def _print_stdout(line: str):
    print(line)


def _print_stderr(line: str):
    print(line, file=sys.stderr)


class Launcher:
    """Installs and launches game versions.

    Use as an async context manager: the HTTP session used by every download
    is opened on enter and closed on exit, unless one was given explicitly,
    in which case the caller keeps ownership of it.

    Installs of the same version are serialized. The set of installed
    versions is only updated once an install fully succeeded.
    """

    def __init__(self, config: LauncherConfig, http_session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.game = GameDirectory(config.minecraft_dir)
        self._http_session = http_session
        self._owns_session = http_session is None
        self._install_locks: Dict[str, asyncio.Lock] = {}
        self.installed: Set[str] = set()
        self.fetcher: Optional[ArtifactFetcher] = None
        self._resolvers: Dict[pathlib.Path, VersionConfigResolver] = {}
        self.environment = Environment()

    async def __aenter__(self) -> "Launcher":
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(timeout=HTTP_TIMEOUT)
        self.fetcher = ArtifactFetcher(self._http_session)
        self.installed = installed_versions(self.game.versions)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._owns_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _game(self, game_root: Optional[pathlib.Path]) -> GameDirectory:
        return self.game if game_root is None else GameDirectory(pathlib.Path(game_root))

    def _progress(self, total: int, desc: str):
        return tqdm(total=total, desc=desc, unit="file", leave=False,
                    disable=not self.config.show_progress)

    def version_resolver(self, game_root: Optional[pathlib.Path] = None) -> VersionConfigResolver:
        game = self._game(game_root)
        resolver = self._resolvers.get(game.root)
        if resolver is None:
            resolver = VersionConfigResolver(self.fetcher, game.versions, self.config.manifest_url)
            self._resolvers[game.root] = resolver
        return resolver

    def asset_engine(self, game_root: Optional[pathlib.Path] = None) -> AssetSyncEngine:
        return AssetSyncEngine(self.fetcher, self._game(game_root).assets, self.config.resources_url)

    # --- Collaborator-facing API ---

    async def resolve_version_config(self, version_id: str,
                                     game_root: Optional[pathlib.Path] = None) -> VersionConfig:
        return await self.version_resolver(game_root).resolve(version_id)

    async def fetch_and_verify(self, url: str, dest: pathlib.Path, sha1: Optional[str]) -> bool:
        return await self.fetcher.fetch_verified(url, pathlib.Path(dest), sha1)

    async def fetch_asset_index(self, url: str, index_id: str) -> AssetIndex:
        return await self.asset_engine().fetch_index(url, index_id)

    async def sync_asset(self, logical_path: str, asset_hash: str) -> bool:
        return await self.asset_engine().sync_asset(logical_path, asset_hash)

    async def install(self, version_id: str, game_root: Optional[pathlib.Path] = None) -> InstallReport:
        """Ensures every file ``version_id`` needs is present and verified."""
        lock = self._install_locks.setdefault(version_id, asyncio.Lock())
        async with lock:
            report, _ = await self._install(version_id, self._game(game_root))
        return report

    async def _install(self, version_id: str, game: GameDirectory) -> Tuple[InstallReport, VersionConfig]:
        log.info(f"Preparing Minecraft {version_id}...")
        config = await self.version_resolver(game.root).resolve(version_id)
        report = InstallReport(version_id=version_id)
        concurrency = max(1, int(self.config.max_concurrency))

        # Client jar
        log.info('Checking client JAR...')
        client_jar = game.client_jar(version_id)
        if config.client_download is not None:
            with self._progress(1, "Client JAR") as pbar:
                downloaded = await self.fetcher.fetch_verified(
                    config.client_download.url, client_jar, config.client_download.sha1)
                pbar.update(1)
            if downloaded:
                report.downloaded += 1
            else:
                report.present += 1
        elif not client_jar.is_file():
            raise InvalidVersionConfig(f"Version {version_id} has no client download and no local {client_jar.name}")

        # Libraries
        log.info(f"Processing {len(config.libraries)} libraries...")
        libraries = LibraryResolver(self.fetcher, game.libraries, self.config.maven_url, self.environment)
        with self._progress(len(config.libraries), "Libraries") as pbar:
            library_paths = await libraries.resolve_all(config.libraries, concurrency, pbar)
        report.classpath = library_paths
        report.omitted = [omission.name for omission in libraries.omitted]
        report.downloaded += libraries.downloaded
        report.present += libraries.present
        if libraries.omitted:
            log.warning(f"{len(libraries.omitted)} libraries omitted from the classpath: {', '.join(report.omitted)}")
        log.info('Library check complete.')

        # Natives
        log.info('Extracting native libraries...')
        natives = NativeExtractor(self.fetcher, game.libraries, environment=self.environment)
        bundles = natives.native_bundles(config.libraries)
        with self._progress(len(bundles), "Natives") as pbar:
            await natives.prepare(config.libraries, game.natives_dir(version_id), pbar)
        report.downloaded += natives.downloaded
        report.present += natives.present
        log.info('Native extraction complete.')

        # Assets
        if config.asset_index is None:
            log.warning(f"Version {version_id} declares no asset index, skipping assets.")
        else:
            log.info('Checking assets...')
            engine = AssetSyncEngine(self.fetcher, game.assets, self.config.resources_url)
            index = await engine.fetch_index(config.asset_index.url, config.asset_index.id,
                                             config.asset_index.sha1)
            log.info(f"Checking {len(index)} asset files listed in index {config.asset_index.id}...")
            with self._progress(len(index), "Assets") as pbar:
                await engine.sync_all(index, concurrency, pbar)
            report.downloaded += engine.downloaded
            report.present += engine.present
            log.info('Asset check complete.')

        self.installed.add(version_id)
        log.info(f"Installed {version_id}: {report.downloaded} downloaded, {report.present} already present.")
        return report, config

    async def build_and_launch(self, session: Session, version_id: str,
                               game_root: Optional[pathlib.Path] = None,
                               ram_mb: Optional[int] = None,
                               server_host: Optional[str] = None,
                               server_port: Optional[int] = None,
                               stdout_sink: Optional[LineSink] = None,
                               stderr_sink: Optional[LineSink] = None) -> int:
        """Installs ``version_id``, launches it and waits for the game to exit.

        Returns the exit code of the game process.
        """
        game = self._game(game_root)
        lock = self._install_locks.setdefault(version_id, asyncio.Lock())
        async with lock:
            report, config = await self._install(version_id, game)

        java = await find_java(self.fetcher, self.config.java, self.config.java_version,
                               self.config.java_install_dir)
        log.info(f"Using Java executable: {java}")

        builder = LaunchCommandBuilder(
            game.root, game.assets, game.libraries, __version__,
            window_size=(self.config.window_width, self.config.window_height))
        plan = builder.build(
            config, session, java, report.classpath, game.client_jar(version_id),
            game.natives_dir(version_id), ram_mb or self.config.ram_mb,
            server_host=server_host, server_port=server_port)
        log.debug("Launch command: " + ' '.join(plan.command).replace(session.access_token, '<token>'))

        log.info(f"Launching Minecraft {version_id} as {session.username}...")
        game.root.mkdir(parents=True, exist_ok=True)
        return await run_process(plan.command, plan.working_dir,
                                 stdout_sink or _print_stdout, stderr_sink or _print_stderr)
