import hashlib
import os
import pathlib
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Artifact:
    url: str
    sha1: Optional[str] = None
    path: Optional[str] = None

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> Optional["Artifact"]:
        if not data or not data.get('url'):
            return None
        return cls(url=data['url'], sha1=data.get('sha1'), path=data.get('path'))


@dataclass(frozen=True)
class AssetIndexInfo:
    id: str
    url: str
    sha1: Optional[str] = None

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> Optional["AssetIndexInfo"]:
        if not data or 'id' not in data or 'url' not in data:
            return None
        return cls(id=data['id'], url=data['url'], sha1=data.get('sha1'))


@dataclass(frozen=True)
class LibraryEntry:
    """One entry of a version's ``libraries`` list.

    A library is addressed either directly (``artifact`` carries a download
    URL) or through its maven coordinate ``name``, optionally fetched from the
    repository base in ``repository``. ``classifiers`` holds the platform
    native bundles, keyed by classifier name. ``rules`` restrict the entry to
    some platforms.
    """
    name: Optional[str] = None
    repository: Optional[str] = None
    artifact: Optional[Artifact] = None
    classifiers: Dict[str, Artifact] = field(default_factory=dict)
    rules: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.artifact:
            return self.artifact.url.rsplit('/', 1)[-1]
        return 'unknown-library'

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "LibraryEntry":
        downloads = data.get('downloads') or {}
        classifiers = {}
        for key, value in (downloads.get('classifiers') or {}).items():
            artifact = Artifact.from_json(value)
            if artifact is not None:
                classifiers[key] = artifact
        return cls(
            name=data.get('name'),
            repository=data.get('url'),
            artifact=Artifact.from_json(downloads.get('artifact')),
            classifiers=classifiers,
            rules=list(data.get('rules') or []),
        )


@dataclass(frozen=True)
class VersionDescriptor:
    id: str
    type: str
    url: str
    time: Optional[str] = None
    release_time: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "VersionDescriptor":
        return cls(
            id=data['id'],
            type=data.get('type', 'release'),
            url=data['url'],
            time=data.get('time'),
            release_time=data.get('releaseTime'),
        )


@dataclass(frozen=True)
class VersionCatalog:
    latest_release: Optional[str]
    latest_snapshot: Optional[str]
    versions: List[VersionDescriptor]

    def get(self, version_id: str) -> Optional[VersionDescriptor]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "VersionCatalog":
        latest = data.get('latest') or {}
        return cls(
            latest_release=latest.get('release'),
            latest_snapshot=latest.get('snapshot'),
            versions=[VersionDescriptor.from_json(v) for v in data.get('versions', [])],
        )


@dataclass(frozen=True)
class VersionConfig:
    id: str
    inherits_from: Optional[str] = None
    type: Optional[str] = None
    main_class: Optional[str] = None
    assets: Optional[str] = None
    asset_index: Optional[AssetIndexInfo] = None
    libraries: List[LibraryEntry] = field(default_factory=list)
    client_download: Optional[Artifact] = None
    legacy_arguments: Optional[str] = None

    @property
    def asset_index_id(self) -> str:
        if self.asset_index is not None:
            return self.asset_index.id
        return self.assets or 'legacy'

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "VersionConfig":
        downloads = data.get('downloads') or {}
        return cls(
            id=data['id'],
            inherits_from=data.get('inheritsFrom') or None,
            type=data.get('type') or None,
            main_class=data.get('mainClass') or None,
            assets=data.get('assets') or None,
            asset_index=AssetIndexInfo.from_json(data.get('assetIndex')),
            libraries=[LibraryEntry.from_json(lib) for lib in data.get('libraries') or []],
            client_download=Artifact.from_json(downloads.get('client')),
            legacy_arguments=(data.get('minecraftArguments') or '').strip() or None,
        )


# Logical asset path -> object hash.
AssetIndex = Dict[str, str]


def decode_asset_index(data: Dict[str, Any]) -> AssetIndex:
    return {path: obj['hash'] for path, obj in (data.get('objects') or {}).items() if obj.get('hash')}


@dataclass(frozen=True)
class Session:
    username: str
    uuid: str

    @property
    def access_token(self) -> str:
        # Offline sessions reuse the uuid as token.
        return self.uuid


def offline_uuid(username: str) -> str:
    """Name-based UUID compatible with the JVM ``UUID.nameUUIDFromBytes``."""
    digest = hashlib.md5(f"OfflinePlayer:{username}".encode('utf-8')).digest()
    return str(uuid.UUID(bytes=digest, version=3))


def offline_session(username: str) -> Session:
    return Session(username=username, uuid=offline_uuid(username))


@dataclass
class LaunchPlan:
    java: str
    jvm_arguments: List[str]
    classpath: List[pathlib.Path]
    natives_dir: pathlib.Path
    main_class: str
    arguments: List[str]
    working_dir: pathlib.Path

    @property
    def command(self) -> List[str]:
        classpath = os.pathsep.join(str(path) for path in self.classpath)
        return [self.java, *self.jvm_arguments, "-cp", classpath, self.main_class, *self.arguments]


@dataclass
class InstallReport:
    version_id: str
    classpath: List[pathlib.Path] = field(default_factory=list)
    omitted: List[str] = field(default_factory=list)
    downloaded: int = 0
    present: int = 0
