import asyncio
import logging
import pathlib
import shutil
import zipfile
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .fetcher import ArtifactFetcher
from .libraries import url_to_path
from .models import Artifact, LibraryEntry
from .rules import Environment

log = logging.getLogger(__name__)

# Classifier markers used by native bundles, per OS name.
PLATFORM_MARKERS: Dict[str, Tuple[str, ...]] = {
    'windows': ('windows',),
    'osx': ('osx', 'macos'),
    'linux': ('linux',),
}


def select_classifier(classifiers: Dict[str, Artifact],
                      markers: Sequence[str]) -> Optional[Tuple[str, Artifact]]:
    """Picks the native classifier matching one of the platform ``markers``.

    An exact ``natives-<marker>`` key wins, otherwise the first key that
    contains it.
    """
    wanted = [f"natives-{marker}" for marker in markers]
    for key in wanted:
        if key in classifiers:
            return key, classifiers[key]
    for key, artifact in classifiers.items():
        lowered = key.lower()
        if any(w in lowered for w in wanted):
            return key, artifact
    return None


def is_metadata_entry(name: str) -> bool:
    return name.upper().startswith('META-INF/')


def _extract_zip_sync(jar_path: pathlib.Path, natives_dir: pathlib.Path) -> List[str]:
    extracted = []
    with zipfile.ZipFile(jar_path, 'r') as zip_ref:
        for member in zip_ref.infolist():
            if member.is_dir() or is_metadata_entry(member.filename):
                continue
            filename = pathlib.PurePosixPath(member.filename).name
            if not filename:
                continue
            with zip_ref.open(member) as src, open(natives_dir / filename, 'wb') as dst:
                shutil.copyfileobj(src, dst)
            extracted.append(filename)
    return extracted


async def extract_natives(jar_path: pathlib.Path, natives_dir: pathlib.Path) -> List[str]:
    """Extracts a native bundle, flattened, into ``natives_dir``.

    Directories and ``META-INF/`` entries are skipped. Files already in the
    directory are overwritten.
    """
    natives_dir.mkdir(parents=True, exist_ok=True)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _extract_zip_sync, jar_path, natives_dir)


def _reset_dir(path: pathlib.Path):
    if path.is_dir():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


class NativeExtractor:

    def __init__(self, fetcher: ArtifactFetcher, libraries_dir: pathlib.Path,
                 os_name: Optional[str] = None, environment: Optional[Environment] = None):
        self.fetcher = fetcher
        self.libraries_dir = libraries_dir
        self.environment = environment or Environment(os_name=os_name)
        self.os_name = self.environment.os_name
        self.markers = PLATFORM_MARKERS.get(self.os_name, (self.os_name,))
        self.downloaded = 0
        self.present = 0

    def native_bundles(self, libraries: Iterable[LibraryEntry]) -> List[Tuple[LibraryEntry, Artifact]]:
        bundles = []
        for lib in libraries:
            if not lib.classifiers:
                continue
            if not self.environment.check_item_rules(lib.rules):
                log.debug(f"Natives of {lib.display_name} not used on this platform.")
                continue
            match = select_classifier(lib.classifiers, self.markers)
            if match is None:
                continue
            key, artifact = match
            log.debug(f"Native classifier {key} selected for {lib.display_name}")
            bundles.append((lib, artifact))
        return bundles

    async def prepare(self, libraries: Iterable[LibraryEntry], natives_dir: pathlib.Path,
                      progress=None) -> List[pathlib.Path]:
        """Downloads and extracts every native bundle for this platform.

        The natives directory is recreated first. Bundles are processed in
        library order, so a later bundle wins over an earlier one with the
        same file names. Download failures propagate.
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _reset_dir, natives_dir)

        bundles = self.native_bundles(libraries)
        if not bundles:
            log.info("No native libraries to extract for this platform.")
        jars = []
        for lib, artifact in bundles:
            jar_path = self.libraries_dir / url_to_path(artifact.url)
            if await self.fetcher.fetch_verified(artifact.url, jar_path, artifact.sha1):
                self.downloaded += 1
            else:
                self.present += 1
            extracted = await extract_natives(jar_path, natives_dir)
            log.debug(f"Extracted {len(extracted)} files from {jar_path.name}")
            jars.append(jar_path)
            if progress is not None:
                progress.update(1)
        return jars
