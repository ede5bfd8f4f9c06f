import pathlib

import pytest

from mcbootstrap.errors import LaunchSpawnFailure
from mcbootstrap.java import find_java, find_java_executable, java_home_executable


def make_executable(path: pathlib.Path) -> pathlib.Path:
    path.parent.mkdir(parents=True)
    path.write_text('#!/bin/sh\n')
    path.chmod(0o755)
    return path


def test_java_home_executable():
    home = '/Library/Java/JavaVirtualMachines/temurin-17.jdk/Contents/Home'
    assert java_home_executable(home, 'Darwin') == pathlib.Path(home, 'bin', 'java')
    assert java_home_executable('C:/jdk-17', 'Windows') == pathlib.Path('C:/jdk-17', 'bin', 'java.exe')


@pytest.mark.asyncio
async def test_macos_java_home_is_used(monkeypatch, tmp_path):
    home = tmp_path / 'temurin-17.jdk' / 'Contents' / 'Home'
    java = make_executable(home / 'bin' / 'java')
    monkeypatch.setenv('JAVA_HOME', str(home))
    monkeypatch.setattr('platform.system', lambda: 'Darwin')

    assert await find_java(None, None, 17, tmp_path / 'java-runtime') == str(java)


@pytest.mark.asyncio
async def test_configured_java_must_exist(tmp_path):
    with pytest.raises(LaunchSpawnFailure):
        await find_java(None, str(tmp_path / 'missing' / 'java'), 17, tmp_path / 'java-runtime')


def test_find_extracted_macos_runtime(tmp_path):
    java = make_executable(tmp_path / 'jdk-17.0.9+9-jre' / 'Contents' / 'Home' / 'bin' / 'java')
    assert find_java_executable(tmp_path, 'Darwin') == java.resolve()
    assert find_java_executable(tmp_path / 'nowhere', 'Darwin') is None
