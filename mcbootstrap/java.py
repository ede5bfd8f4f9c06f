import asyncio
import logging
import os
import pathlib
import platform
import shutil
import tarfile
import tempfile
import zipfile
from typing import Dict, Optional

import aiofiles.os
import aiohttp

from .errors import LaunchSpawnFailure, NetworkFailure
from .fetcher import ArtifactFetcher

log = logging.getLogger(__name__)

# --- Configuration ---
ADOPTIUM_API_BASE = 'https://api.adoptium.net/v3'
DEFAULT_IMAGE_TYPE = 'jre'


def get_api_os_arch() -> Optional[Dict[str, str]]:
    """Maps Python platform/machine to Adoptium API values."""
    system = platform.system()
    machine = platform.machine().lower()

    if system == 'Windows':
        api_os = 'windows'
    elif system == 'Darwin':
        api_os = 'mac'
    elif system == 'Linux':
        api_os = 'linux'
    else:
        log.error(f"Unsupported operating system: {system}")
        return None

    if machine in ['amd64', 'x86_64']:
        api_arch = 'x64'
    elif machine in ['arm64', 'aarch64']:
        api_arch = 'aarch64'
    else:
        log.error(f"Unsupported architecture: {machine}")
        return None

    return {"os": api_os, "arch": api_arch}


def java_relpath(system: str) -> pathlib.Path:
    if system == 'Windows':
        return pathlib.Path('bin', 'java.exe')
    elif system == 'Darwin':
        return pathlib.Path('Contents', 'Home', 'bin', 'java')
    return pathlib.Path('bin', 'java')


def java_home_executable(java_home: str, system: str) -> pathlib.Path:
    """The java executable inside a ``JAVA_HOME``, which on macOS already is ``Contents/Home``."""
    return pathlib.Path(java_home, 'bin', 'java.exe' if system == 'Windows' else 'java')


def find_java_executable(extract_dir: pathlib.Path, system: Optional[str] = None) -> Optional[pathlib.Path]:
    """Finds the java executable of a runtime extracted into ``extract_dir``.

    Archives usually hold a single top-level directory, so its children are
    checked before the directory itself.
    """
    system = system or platform.system()
    if not extract_dir.is_dir():
        return None

    candidates = [entry for entry in sorted(extract_dir.iterdir()) if entry.is_dir()]
    candidates.append(extract_dir)
    for base in candidates:
        java_path = base / java_relpath(system)
        if java_path.is_file() and os.access(java_path, os.X_OK):
            return java_path.resolve()
    return None


def _extract_archive(archive_path: pathlib.Path, dest_path: pathlib.Path):
    if zipfile.is_zipfile(archive_path):
        with zipfile.ZipFile(archive_path, 'r') as zip_ref:
            zip_ref.extractall(dest_path)
    else:
        with tarfile.open(archive_path, 'r:gz') as tar_ref:
            tar_ref.extractall(path=dest_path)


async def download_java(fetcher: ArtifactFetcher, version: int, destination_dir: pathlib.Path,
                        image_type: str = DEFAULT_IMAGE_TYPE) -> Optional[pathlib.Path]:
    """Downloads and extracts a Temurin runtime unless one is already there.

    Returns the java executable, or None if no runtime could be obtained.
    """
    existing = find_java_executable(destination_dir)
    if existing:
        log.info(f"Valid Java executable already found at: {existing}. Skipping download.")
        return existing

    platform_info = get_api_os_arch()
    if not platform_info:
        return None

    api_url = (f"{ADOPTIUM_API_BASE}/binary/latest/{version}/ga/{platform_info['os']}/"
               f"{platform_info['arch']}/{image_type}/hotspot/normal/eclipse")
    log.info(f"Downloading Java {version} ({image_type}) for {platform_info['os']}-{platform_info['arch']}")

    try:
        async with fetcher.session.head(api_url, allow_redirects=True) as head_response:
            head_response.raise_for_status()
            download_url = str(head_response.url)
    except aiohttp.ClientResponseError as e:
        log.error(f"HTTP Error resolving Java download: {e.status} {e.message}")
        return None
    except aiohttp.ClientError as e:
        log.error(f"Could not resolve Java download: {e}")
        return None

    fd, temp_name = tempfile.mkstemp(suffix='.zip' if download_url.endswith('.zip') else '.tar.gz',
                                     prefix='java-dl-')
    os.close(fd)
    temp_path = pathlib.Path(temp_name)
    try:
        await fetcher.fetch(download_url, temp_path)
        log.info(f"Extracting Java archive to {destination_dir}...")
        await aiofiles.os.makedirs(destination_dir, exist_ok=True)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _extract_archive, temp_path, destination_dir)
    except NetworkFailure as e:
        log.error(f"Java download failed: {e}")
        return None
    finally:
        if temp_path.exists():
            temp_path.unlink()

    java_path = find_java_executable(destination_dir)
    if java_path is None:
        log.error(f"Extraction finished but no Java executable was found in {destination_dir}")
    return java_path


async def find_java(fetcher: ArtifactFetcher, configured: Optional[str], version: int,
                    install_dir: pathlib.Path) -> str:
    """Locates the java executable used to launch the game.

    Order: configured path, ``JAVA_HOME``, ``java`` on the ``PATH``, then a
    runtime downloaded into ``install_dir``.
    """
    if configured:
        if shutil.which(configured) or pathlib.Path(configured).is_file():
            return configured
        raise LaunchSpawnFailure(f"Configured Java executable not found: {configured}")

    java_home = os.environ.get('JAVA_HOME')
    if java_home:
        java_path = java_home_executable(java_home, platform.system())
        if java_path.is_file():
            return str(java_path)

    on_path = shutil.which('java')
    if on_path:
        return on_path

    log.info(f"No Java found, installing a runtime into {install_dir}")
    downloaded = await download_java(fetcher, version, install_dir)
    if downloaded is None:
        raise LaunchSpawnFailure(f"No Java {version} runtime available")
    return str(downloaded)
