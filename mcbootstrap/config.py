import json
import logging
import pathlib
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from .errors import ConfigError
from .replacer import replace_text

log = logging.getLogger(__name__)

LAUNCHER_CONFIG_FILENAME = 'launcher_config.json'
USER_CONFIG_FILENAME = 'config.json'

DEFAULT_MANIFEST_URL = 'https://launchermeta.mojang.com/mc/game/version_manifest.json'
DEFAULT_RESOURCES_URL = 'https://resources.download.minecraft.net/'
DEFAULT_MAVEN_URL = 'https://libraries.minecraft.net/'


@dataclass
class LauncherConfig:
    basepath: pathlib.Path = field(default_factory=pathlib.Path.cwd)
    path: str = '.minecraft'
    version: Optional[str] = None
    java: Optional[str] = None
    java_version: int = 17
    ram_mb: int = 2048
    server: Optional[str] = None
    server_port: int = 25565
    max_concurrency: int = 1
    show_progress: bool = True
    window_width: int = 854
    window_height: int = 480
    manifest_url: str = DEFAULT_MANIFEST_URL
    resources_url: str = DEFAULT_RESOURCES_URL
    maven_url: str = DEFAULT_MAVEN_URL
    auth_player_name: str = 'Player'

    # --- Directories ---
    @property
    def minecraft_dir(self) -> pathlib.Path:
        return pathlib.Path(self.basepath) / self.path

    @property
    def java_install_dir(self) -> pathlib.Path:
        return pathlib.Path(self.basepath) / 'java-runtime'

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "LauncherConfig":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in values.items():
            if key in known:
                kwargs[key] = value
            else:
                log.warning(f"Unknown launcher config key '{key}', ignoring.")
        if 'basepath' in kwargs:
            kwargs['basepath'] = pathlib.Path(kwargs['basepath'])
        return cls(**kwargs)


def _read_json(path: pathlib.Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a JSON object")
    return data


def load_config(config_path: Optional[pathlib.Path] = None) -> LauncherConfig:
    """Loads ``launcher_config.json`` and the optional user ``config.json``.

    String values of the launcher config may contain ``:thisdir:``, which is
    replaced with the directory holding the config file. A missing launcher
    config yields the defaults; a malformed one raises ``ConfigError``. A
    malformed user config is only warned about.
    """
    if config_path is None:
        config_path = pathlib.Path.cwd() / LAUNCHER_CONFIG_FILENAME
    config_dir = config_path.parent.resolve()

    values: Dict[str, Any] = {'basepath': config_dir}
    try:
        raw = _read_json(config_path)
    except FileNotFoundError:
        log.info(f"{config_path} not found, using default launcher config.")
        raw = {}
    except (json.JSONDecodeError, ValueError) as e:
        raise ConfigError(f"Error parsing {config_path}: {e}") from e

    for key, value in raw.items():
        values[key] = replace_text(value, {':thisdir:': str(config_dir)})

    user_config_path = config_dir / USER_CONFIG_FILENAME
    if user_config_path.exists():
        try:
            user_cfg = _read_json(user_config_path)
        except (json.JSONDecodeError, ValueError) as e:
            log.warning(f"Could not parse {USER_CONFIG_FILENAME}: {e}. Using defaults.")
        else:
            if user_cfg.get('auth_player_name'):
                values['auth_player_name'] = user_cfg['auth_player_name']

    return LauncherConfig.from_dict(values)
