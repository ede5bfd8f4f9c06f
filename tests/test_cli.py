import argparse

import pytest

from mcbootstrap.__main__ import build_parser, main, parse_server


def test_parse_server():
    assert parse_server('mc.example.org') == ('mc.example.org', None)
    assert parse_server('mc.example.org:25570') == ('mc.example.org', 25570)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_server('mc.example.org:port')


def test_parser_options():
    args = build_parser().parse_args(['1.20.1', '-u', 'Alex', '--ram', '4096', '-s', 'localhost:25566'])
    assert args.version == '1.20.1'
    assert args.username == 'Alex'
    assert args.ram == 4096
    assert args.server == ('localhost', 25566)
    assert not args.install_only


@pytest.mark.asyncio
async def test_main_without_version(tmp_path):
    assert await main(['--config', str(tmp_path / 'launcher_config.json')]) == 1
