import argparse
import asyncio
import logging
import pathlib
import sys
from typing import List, Optional, Tuple

from .config import LAUNCHER_CONFIG_FILENAME, load_config
from .errors import LauncherError
from .launcher import Launcher
from .models import offline_session

log = logging.getLogger('mcbootstrap')


def parse_server(value: str) -> Tuple[str, Optional[int]]:
    """``host`` or ``host:port``."""
    host, sep, port = value.rpartition(':')
    if not sep:
        return value, None
    if not port.isdigit():
        raise argparse.ArgumentTypeError(f"invalid server port in '{value}'")
    return host, int(port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='mcbootstrap', description='Install and launch a Minecraft version.')
    parser.add_argument('version', nargs='?', help='version id, defaults to the configured one')
    parser.add_argument('--config', type=pathlib.Path, help=f'path to {LAUNCHER_CONFIG_FILENAME}')
    parser.add_argument('--game-dir', type=pathlib.Path, help='game directory')
    parser.add_argument('-u', '--username', help='offline player name')
    parser.add_argument('--ram', type=int, metavar='MB', help='maximum heap size in megabytes')
    parser.add_argument('-s', '--server', type=parse_server, metavar='HOST[:PORT]',
                        help='server to connect to once started')
    parser.add_argument('--install-only', action='store_true', help='install the version without launching')
    parser.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    config = load_config(args.config)
    if args.ram:
        config.ram_mb = args.ram

    version_id = args.version or config.version
    if not version_id:
        log.error(f"No version given and none configured in {LAUNCHER_CONFIG_FILENAME}.")
        return 1

    server_host, server_port = args.server if args.server else (config.server, config.server_port)

    async with Launcher(config) as launcher:
        if args.install_only:
            report = await launcher.install(version_id, args.game_dir)
            if report.omitted:
                log.warning(f"Installed with {len(report.omitted)} libraries missing.")
            return 0

        session = offline_session(args.username or config.auth_player_name)
        return_code = await launcher.build_and_launch(
            session, version_id, args.game_dir,
            server_host=server_host, server_port=server_port)

    # Shell convention for a process killed by a signal.
    return 128 - return_code if return_code < 0 else return_code


def run():
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Launch cancelled by user.")
        code = 130
    except LauncherError:
        log.exception("--- An error occurred during setup or launch ---")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    run()
