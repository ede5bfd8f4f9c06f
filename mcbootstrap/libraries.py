import logging
import pathlib
import posixpath
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlparse

from .errors import IntegrityFailure, NetworkFailure, PartialLibraryResolution
from .fetcher import ArtifactFetcher, PathLocks, file_exists, gather_bounded
from .models import LibraryEntry
from .rules import Environment

log = logging.getLogger(__name__)


def url_to_path(url: str) -> str:
    """Relative library path mirroring the URL path.

    ``https://host/a/b/c.jar`` gives ``a/b/c.jar``. Paths escaping the
    libraries root are rejected.
    """
    path = posixpath.normpath(unquote(urlparse(url).path).lstrip('/'))
    if path in ('', '.') or path == '..' or path.startswith('../'):
        raise ValueError(f"Cannot derive a library path from URL: {url}")
    return path


def maven_path(coordinate: str) -> str:
    """``group:artifact:version[:classifier]`` to its repository path."""
    parts = coordinate.split(':')
    if len(parts) < 3 or not all(parts[:3]):
        raise ValueError(f"Invalid maven coordinate: {coordinate}")
    group, artifact, version = parts[:3]
    filename = f"{artifact}-{version}"
    if len(parts) > 3 and parts[3]:
        filename += f"-{parts[3]}"
    return f"{group.replace('.', '/')}/{artifact}/{version}/{filename}.jar"


class LibraryResolver:
    """Maps library entries to local jars, downloading them when missing.

    A library that cannot be located is omitted from the classpath and
    recorded in ``omitted`` instead of failing the install.
    """

    def __init__(self, fetcher: ArtifactFetcher, libraries_dir: pathlib.Path, default_repository: str,
                 environment: Optional[Environment] = None):
        self.fetcher = fetcher
        self.environment = environment or Environment()
        self.libraries_dir = libraries_dir
        self.default_repository = default_repository
        self.omitted: List[PartialLibraryResolution] = []
        self.downloaded = 0
        self.present = 0
        self._locks = PathLocks()

    def local_path(self, entry: LibraryEntry) -> Optional[pathlib.Path]:
        if entry.artifact is not None:
            return self.libraries_dir / url_to_path(entry.artifact.url)
        if entry.name:
            return self.libraries_dir / maven_path(entry.name)
        return None

    def _omit(self, entry: LibraryEntry, reason: str) -> None:
        omission = PartialLibraryResolution(entry.display_name, reason)
        log.warning(str(omission))
        self.omitted.append(omission)

    async def resolve(self, entry: LibraryEntry) -> Optional[pathlib.Path]:
        """Local path of ``entry``, or None when it had to be omitted.

        Entries whose rules exclude this platform are skipped, not omitted.
        """
        if not self.environment.check_item_rules(entry.rules):
            log.debug(f"Library {entry.display_name} not used on this platform, skipping.")
            return None
        if entry.artifact is None and entry.classifiers:
            # Native-only entries are handled by the natives extractor.
            log.debug(f"Library {entry.display_name} only provides natives, skipping classpath.")
            return None

        try:
            path = self.local_path(entry)
        except ValueError as e:
            self._omit(entry, str(e))
            return None
        if path is None:
            self._omit(entry, "neither a download URL nor a maven coordinate")
            return None

        if entry.artifact is not None:
            url, sha1 = entry.artifact.url, entry.artifact.sha1
        else:
            if await file_exists(path):
                self.present += 1
                return path
            base = entry.repository or self.default_repository
            if not base.endswith('/'):
                base += '/'
            url, sha1 = base + maven_path(entry.name), None

        async with self._locks(path):
            try:
                downloaded = await self.fetcher.fetch_verified(url, path, sha1)
            except (NetworkFailure, IntegrityFailure) as e:
                self._omit(entry, str(e))
                return None

        if downloaded:
            self.downloaded += 1
        else:
            self.present += 1
        return path

    async def resolve_all(self, entries: Iterable[LibraryEntry], concurrency: int = 1,
                          progress=None) -> List[pathlib.Path]:
        """Resolves every entry, keeping the library order of the version."""

        async def resolve_one(entry):
            path = await self.resolve(entry)
            if progress is not None:
                progress.update(1)
            return path

        paths = await gather_bounded((resolve_one(entry) for entry in entries), concurrency)
        return [path for path in paths if path is not None]
