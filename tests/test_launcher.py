import functools
import json
import sys

import pytest

from mcbootstrap import Launcher, LauncherConfig, offline_session
from mcbootstrap.errors import IntegrityFailure
from mcbootstrap.fetcher import ArtifactFetcher

from conftest import make_jar, sha1

CLIENT = b'PK client jar'
PATCHY = b'PK patchy'
NATIVES = make_jar({'META-INF/MANIFEST.MF': b'', 'liblwjgl.so': b'so', 'lwjgl.dll': b'dll', 'liblwjgl.dylib': b'dylib'})
SOUND = b'sound'
LANG = b'lang'


@pytest.fixture(autouse=True)
def no_retry_delay(monkeypatch):
    monkeypatch.setattr("mcbootstrap.launcher.ArtifactFetcher", functools.partial(ArtifactFetcher, retry_delay=0))


@pytest.fixture
def game_remote(remote):
    def artifact(path, data):
        return {"url": remote.add(path, data), "sha1": sha1(data)}

    objects = {}
    for logical, data in [('minecraft/sounds/a.ogg', SOUND), ('minecraft/sounds/b.ogg', SOUND),
                          ('minecraft/lang/en_us.lang', LANG)]:
        digest = sha1(data)
        remote.add(f'/resources/{digest[:2]}/{digest}', data)
        objects[logical] = {"hash": digest, "size": len(data)}
    index = json.dumps({"objects": objects}).encode()

    natives = artifact('/libs/org/lwjgl/lwjgl-platform/2.9.4/lwjgl-platform-2.9.4-natives.jar', NATIVES)
    descriptor = {
        "id": "1.12.2",
        "type": "release",
        "mainClass": "net.minecraft.client.main.Main",
        "minecraftArguments": "--username ${auth_player_name} --version ${version_name} "
                              "--accessToken ${auth_access_token}",
        "assets": "1.12",
        "assetIndex": {"id": "1.12", "url": remote.add('/indexes/1.12.json', index), "sha1": sha1(index)},
        "downloads": {"client": artifact('/client.jar', CLIENT)},
        "libraries": [
            {"name": "com.mojang:patchy:1.1",
             "downloads": {"artifact": artifact('/libs/com/mojang/patchy/1.1/patchy-1.1.jar', PATCHY)}},
            {"name": "org.lwjgl.lwjgl:lwjgl-platform:2.9.4",
             "downloads": {"classifiers": {"natives-linux": natives, "natives-windows": natives,
                                           "natives-osx": natives}}},
            {"name": "com.example:gone:1"},
        ],
    }
    catalog = {"latest": {"release": "1.12.2"},
               "versions": [{"id": "1.12.2", "type": "release",
                             "url": remote.add('/versions/1.12.2.json', json.dumps(descriptor).encode())}]}
    remote.add('/version_manifest.json', json.dumps(catalog).encode())
    return remote


@pytest.fixture
def config(game_remote, tmp_path):
    return LauncherConfig(
        basepath=tmp_path,
        manifest_url=game_remote.url('/version_manifest.json'),
        resources_url=game_remote.url('/resources'),
        maven_url=game_remote.url('/maven'),
        show_progress=False,
    )


@pytest.mark.asyncio
async def test_install(config, game_remote, http_session, tmp_path):
    game = tmp_path / '.minecraft'

    async with Launcher(config, http_session) as launcher:
        report = await launcher.install('1.12.2')
        assert launcher.installed == {'1.12.2'}

    assert (game / 'versions' / '1.12.2' / '1.12.2.jar').read_bytes() == CLIENT
    assert (game / 'versions' / '1.12.2' / '1.12.2.json').is_file()
    assert report.classpath == [game / 'libraries' / 'libs/com/mojang/patchy/1.1/patchy-1.1.jar']
    assert report.omitted == ['com.example:gone:1']
    natives = sorted(p.name for p in (game / 'versions' / '1.12.2' / '1.12.2-natives').iterdir())
    assert natives == ['liblwjgl.dylib', 'liblwjgl.so', 'lwjgl.dll']
    assert (game / 'assets' / 'minecraft' / 'sounds' / 'b.ogg').read_bytes() == SOUND
    assert (game / 'assets' / 'indexes' / '1.12.json').is_file()
    # client, patchy, natives and two distinct asset objects
    assert report.downloaded == 5
    assert not http_session.closed


@pytest.mark.asyncio
async def test_reinstall_downloads_nothing(config, game_remote, http_session):
    async with Launcher(config, http_session) as launcher:
        await launcher.install('1.12.2')

    hits = dict(game_remote.hits)
    async with Launcher(config, http_session) as launcher:
        assert launcher.installed == {'1.12.2'}
        report = await launcher.install('1.12.2')

    assert report.downloaded == 0
    new_requests = {path: count - hits.get(path, 0) for path, count in game_remote.hits.items()
                    if count != hits.get(path, 0)}
    # Only the catalog and descriptor are refreshed, plus the omitted library is retried.
    assert set(new_requests) == {'/version_manifest.json', '/versions/1.12.2.json',
                                 '/maven/com/example/gone/1/gone-1.jar'}


@pytest.mark.asyncio
async def test_tampered_file_is_repaired(config, game_remote, http_session, tmp_path):
    client = tmp_path / '.minecraft' / 'versions' / '1.12.2' / '1.12.2.jar'
    async with Launcher(config, http_session) as launcher:
        await launcher.install('1.12.2')
        client.write_bytes(b'tampered')
        report = await launcher.install('1.12.2')

    assert client.read_bytes() == CLIENT
    assert report.downloaded == 1


@pytest.mark.asyncio
async def test_failed_install_is_not_recorded(config, game_remote, http_session):
    game_remote.files['/client.jar'] = b'wrong bytes'
    async with Launcher(config, http_session) as launcher:
        with pytest.raises(IntegrityFailure):
            await launcher.install('1.12.2')
        assert launcher.installed == set()


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == 'win32', reason='uses a shell script as java')
async def test_build_and_launch(config, game_remote, http_session, tmp_path):
    java = tmp_path / 'java'
    java.write_text('#!/bin/sh\nfor arg in "$@"; do echo "$arg"; done\necho "boom" >&2\nexit 7\n')
    java.chmod(0o755)
    config.java = str(java)
    config.ram_mb = 1024
    out, err = [], []
    session = offline_session('Steve')

    async with Launcher(config, http_session) as launcher:
        code = await launcher.build_and_launch(session, '1.12.2', server_host='localhost',
                                               stdout_sink=out.append, stderr_sink=err.append)

    assert code == 7
    assert err == ['boom']
    assert out[0] == '-Xmx1024M'
    assert out[out.index('-cp') + 2] == 'net.minecraft.client.main.Main'
    assert out[out.index('--username') + 1] == 'Steve'
    assert out[out.index('--accessToken') + 1] == session.uuid
    assert out[out.index('--server') + 1] == 'localhost'
    assert out[-4:] == ['--width', '854', '--height', '480']


@pytest.mark.asyncio
async def test_collaborator_api(config, game_remote, http_session, tmp_path):
    assets = tmp_path / '.minecraft' / 'assets'
    async with Launcher(config, http_session) as launcher:
        version = await launcher.resolve_version_config('1.12.2')
        index = await launcher.fetch_asset_index(version.asset_index.url, version.asset_index.id)
        assert await launcher.sync_asset('minecraft/lang/en_us.lang', index['minecraft/lang/en_us.lang'])

        dest = tmp_path / 'copy' / 'client.jar'
        assert await launcher.fetch_and_verify(version.client_download.url, dest, version.client_download.sha1)
        assert not await launcher.fetch_and_verify(version.client_download.url, dest, version.client_download.sha1)

    assert version.legacy_arguments.startswith('--username')
    assert (assets / 'minecraft' / 'lang' / 'en_us.lang').read_bytes() == LANG
    assert dest.read_bytes() == CLIENT
