from typing import List, Optional


class LauncherError(Exception):
    """Base class for every error raised by the launcher."""


class ConfigError(LauncherError):
    """The launcher configuration file could not be read."""


class NetworkFailure(LauncherError):
    """A request returned a non-2xx status or failed at the transport level."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"Failed to download {url}: HTTP {status} {reason}".rstrip()
        else:
            message = f"Failed to download {url}: {reason}"
        super().__init__(message)


class IntegrityFailure(LauncherError):
    """A downloaded file does not match its declared SHA1."""

    def __init__(self, path, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"SHA1 mismatch for {path}. Expected {expected}, got {actual}")


class VersionNotFound(LauncherError):
    def __init__(self, version_id: str):
        self.version_id = version_id
        super().__init__(f"Version not found: {version_id}")


class InheritanceCycle(LauncherError):
    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        super().__init__("Version inheritance cycle: " + " -> ".join(self.chain))


class InvalidVersionConfig(LauncherError):
    """A resolved version is missing a field the launch needs."""


class PartialLibraryResolution(LauncherError):
    """A single library could not be located. Never fatal to an install."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Library {name} omitted from classpath: {reason}")


class LaunchSpawnFailure(LauncherError):
    """The game process could not be started."""
