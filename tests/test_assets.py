import json

import pytest

from mcbootstrap.assets import AssetSyncEngine, object_relpath
from mcbootstrap.errors import NetworkFailure

from conftest import sha1

SOUND = b'ogg vorbis bytes'
LANG = b'menu.play=Play'


def test_object_relpath():
    assert object_relpath('abcdef0123456789') == 'objects/ab/abcdef0123456789'


@pytest.fixture
def engine(remote, fetcher, tmp_path):
    return AssetSyncEngine(fetcher, tmp_path / 'assets', remote.url('/resources'))


def serve_object(remote, data):
    digest = sha1(data)
    remote.add(f'/resources/{digest[:2]}/{digest}', data)
    return digest


@pytest.mark.asyncio
async def test_sync_copies_object_to_logical_path(remote, engine, tmp_path):
    digest = serve_object(remote, SOUND)

    assert await engine.sync_asset('minecraft/sounds/step.ogg', digest)

    obj = tmp_path / 'assets' / 'objects' / digest[:2] / digest
    logical = tmp_path / 'assets' / 'minecraft' / 'sounds' / 'step.ogg'
    assert obj.read_bytes() == SOUND
    assert logical.read_bytes() == SOUND


@pytest.mark.asyncio
async def test_shared_object_downloaded_once(remote, engine, tmp_path):
    digest = serve_object(remote, SOUND)
    index = {'sounds/a.ogg': digest, 'sounds/b.ogg': digest}

    assert await engine.sync_all(index, concurrency=2) == 1

    assert remote.hits[f'/resources/{digest[:2]}/{digest}'] == 1
    assert (tmp_path / 'assets' / 'sounds' / 'a.ogg').read_bytes() == SOUND
    assert (tmp_path / 'assets' / 'sounds' / 'b.ogg').read_bytes() == SOUND


@pytest.mark.asyncio
async def test_sync_is_idempotent(remote, engine):
    index = {'sounds/a.ogg': serve_object(remote, SOUND), 'lang/en_us.lang': serve_object(remote, LANG)}

    assert await engine.sync_all(index) == 2
    hits = remote.total_hits
    assert await engine.sync_all(index) == 0
    assert remote.total_hits == hits


@pytest.mark.asyncio
async def test_escaping_logical_path_is_rejected(remote, engine):
    with pytest.raises(ValueError):
        await engine.sync_asset('../../outside.txt', serve_object(remote, SOUND))


@pytest.mark.asyncio
async def test_index_is_persisted_and_used_offline(remote, fetcher, tmp_path):
    body = json.dumps({"objects": {"sounds/a.ogg": {"hash": sha1(SOUND), "size": len(SOUND)}}}).encode()
    url = remote.add('/indexes/1.12.json', body)
    engine = AssetSyncEngine(fetcher, tmp_path / 'assets', remote.url('/resources'))

    index = await engine.fetch_index(url, '1.12', sha1(body))

    assert index == {"sounds/a.ogg": sha1(SOUND)}
    assert (tmp_path / 'assets' / 'indexes' / '1.12.json').read_bytes() == body

    del remote.files['/indexes/1.12.json']
    assert await engine.fetch_index(url, '1.12') == index


@pytest.mark.asyncio
async def test_missing_index_without_local_copy(remote, engine):
    with pytest.raises(NetworkFailure):
        await engine.fetch_index(remote.url('/indexes/none.json'), 'none')
