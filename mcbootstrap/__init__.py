"""Installs and launches Minecraft versions: version inheritance, verified
downloads of libraries, natives and assets, and the game command line."""

__version__ = '1.0.0'

from .config import LauncherConfig, load_config
from .errors import (
    ConfigError,
    IntegrityFailure,
    InheritanceCycle,
    InvalidVersionConfig,
    LaunchSpawnFailure,
    LauncherError,
    NetworkFailure,
    PartialLibraryResolution,
    VersionNotFound,
)
from .launcher import GameDirectory, Launcher
from .models import InstallReport, LaunchPlan, Session, VersionConfig, offline_session

__all__ = [
    '__version__',
    'ConfigError',
    'GameDirectory',
    'InheritanceCycle',
    'InstallReport',
    'IntegrityFailure',
    'InvalidVersionConfig',
    'LaunchPlan',
    'LaunchSpawnFailure',
    'Launcher',
    'LauncherConfig',
    'LauncherError',
    'NetworkFailure',
    'PartialLibraryResolution',
    'Session',
    'VersionConfig',
    'VersionNotFound',
    'load_config',
    'offline_session',
]
