import logging
import pathlib
import re
from typing import Dict, List, Optional, Sequence, Tuple

from .models import LaunchPlan, Session, VersionConfig
from .replacer import substitute_tokens

log = logging.getLogger(__name__)

LAUNCHER_NAME = 'mcbootstrap'

SNAPSHOT_PATTERN = re.compile(r'^\d{2}w\d{2}[a-z]$')

USER_TYPE = 'legacy'
USER_PROPERTIES = '{}'
DEFAULT_SERVER_PORT = 25565

# Launch wrapper used by legacy mod loaders, and its tweakers.
BRIDGE_MAIN_CLASS = 'net.minecraft.launchwrapper.Launch'
BRIDGE_MAIN_CLASSES = frozenset({BRIDGE_MAIN_CLASS})
TWEAK_CLASS_FLAG = '--tweakClass'
LOADER_TWEAKER = 'optifine.OptiFineTweaker'
LOADER_TWEAKER_LIBRARY = ('optifine', 'OptiFine')
FALLBACK_TWEAKER = 'net.minecraft.launchwrapper.VanillaTweaker'


def version_type(config: VersionConfig) -> str:
    if config.type:
        return config.type
    return 'snapshot' if SNAPSHOT_PATTERN.match(config.id) else 'release'


def has_loader_tweaker(libraries_dir: pathlib.Path) -> bool:
    """True if the loader's tweaker jar is installed under the libraries."""
    loader_dir = libraries_dir.joinpath(*LOADER_TWEAKER_LIBRARY)
    if not loader_dir.is_dir():
        return False
    return any(path.is_file() for path in loader_dir.rglob('*.jar'))


def tweak_classes(arguments: Sequence[str]) -> List[str]:
    return [arguments[i + 1] for i, arg in enumerate(arguments[:-1]) if arg == TWEAK_CLASS_FLAG]


def strip_tweak_class(arguments: Sequence[str], tweaker: str) -> List[str]:
    """Removes every ``--tweakClass <tweaker>`` pair."""
    result = []
    skip = False
    for i, arg in enumerate(arguments):
        if skip:
            skip = False
            continue
        if arg == TWEAK_CLASS_FLAG and i + 1 < len(arguments) and arguments[i + 1] == tweaker:
            skip = True
            continue
        result.append(arg)
    return result


def reconcile_tweakers(arguments: Sequence[str], main_class: str,
                       loader_present: bool) -> Tuple[List[str], str]:
    """Makes the launch wrapper main class and its tweakers consistent.

    With the loader's tweaker jar installed, the fallback tweaker is removed
    because its class would not be found at runtime. A launch wrapper main
    class without any tweaker gets one injected. Any tweaker in the final
    arguments forces the launch wrapper as the main class.
    """
    arguments = list(arguments)
    if loader_present and FALLBACK_TWEAKER in tweak_classes(arguments):
        log.info(f"Removing {FALLBACK_TWEAKER}, {LOADER_TWEAKER} is installed")
        arguments = strip_tweak_class(arguments, FALLBACK_TWEAKER)

    if main_class in BRIDGE_MAIN_CLASSES and not tweak_classes(arguments):
        tweaker = LOADER_TWEAKER if loader_present else FALLBACK_TWEAKER
        log.info(f"Injecting tweaker {tweaker}")
        arguments += [TWEAK_CLASS_FLAG, tweaker]

    if tweak_classes(arguments) and main_class != BRIDGE_MAIN_CLASS:
        log.info(f"Tweaker present, main class {main_class} replaced by {BRIDGE_MAIN_CLASS}")
        main_class = BRIDGE_MAIN_CLASS

    return arguments, main_class


class LaunchCommandBuilder:
    """Assembles the java command line for a resolved version.

    Versions carrying a ``minecraftArguments`` template are launched with
    the template substituted, the others with the fixed modern flags.
    """

    def __init__(self, game_dir: pathlib.Path, assets_dir: pathlib.Path, libraries_dir: pathlib.Path,
                 launcher_version: str, window_size: Tuple[int, int] = (854, 480)):
        self.game_dir = game_dir
        self.assets_dir = assets_dir
        self.libraries_dir = libraries_dir
        self.launcher_version = launcher_version
        self.window_size = window_size

    def variables(self, config: VersionConfig, session: Session, natives_dir: pathlib.Path) -> Dict[str, str]:
        return {
            'auth_player_name': session.username,
            'version_name': config.id,
            'game_directory': str(self.game_dir),
            'assets_root': str(self.assets_dir),
            'assets_index_name': config.asset_index_id,
            'auth_uuid': session.uuid,
            'auth_access_token': session.access_token,
            'user_type': USER_TYPE,
            'user_properties': USER_PROPERTIES,
            'natives_directory': str(natives_dir),
            'launcher_name': LAUNCHER_NAME,
            'launcher_version': self.launcher_version,
        }

    def modern_arguments(self, config: VersionConfig, session: Session) -> List[str]:
        return [
            '--version', config.id,
            '--versionType', version_type(config),
            '--gameDir', str(self.game_dir),
            '--assetsDir', str(self.assets_dir),
            '--assetIndex', config.asset_index_id,
            '--uuid', session.uuid,
            '--accessToken', session.access_token,
            '--userProperties', USER_PROPERTIES,
            '--userType', USER_TYPE,
            '--username', session.username,
        ]

    def game_arguments(self, config: VersionConfig, session: Session, natives_dir: pathlib.Path,
                       server_host: Optional[str] = None, server_port: Optional[int] = None) -> List[str]:
        if config.legacy_arguments:
            args = substitute_tokens(config.legacy_arguments, self.variables(config, session, natives_dir))
        else:
            args = self.modern_arguments(config, session)

        if server_host:
            args += ['--server', server_host, '--port', str(server_port or DEFAULT_SERVER_PORT)]
        width, height = self.window_size
        args += ['--width', str(width), '--height', str(height)]
        return args

    def build(self, config: VersionConfig, session: Session, java: str, library_paths: Sequence[pathlib.Path],
              client_jar: pathlib.Path, natives_dir: pathlib.Path, ram_mb: int,
              server_host: Optional[str] = None, server_port: Optional[int] = None) -> LaunchPlan:
        jvm_args = [
            f"-Xmx{ram_mb}M",
            f"-Djava.library.path={natives_dir}",
            f"-Dorg.lwjgl.librarypath={natives_dir}",
        ]
        args = self.game_arguments(config, session, natives_dir, server_host, server_port)
        args, main_class = reconcile_tweakers(args, config.main_class, has_loader_tweaker(self.libraries_dir))

        return LaunchPlan(
            java=java,
            jvm_arguments=jvm_args,
            classpath=[*library_paths, client_jar],
            natives_dir=natives_dir,
            main_class=main_class,
            arguments=args,
            working_dir=self.game_dir,
        )
