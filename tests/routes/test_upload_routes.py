import json
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import FormData
from aiohttp.test_utils import TestClient, TestServer

from media_factory import image_bytes, zip_bytes
from mvault_backend.features.library import metadata
from mvault_backend.routes import create_app


@pytest_asyncio.fixture
async def client(services):
    async with TestClient(TestServer(create_app(services))) as c:
        yield c


def _form(kind: str, title: str, archive: bytes | None, **extra: str) -> FormData:
    form = FormData()
    form.add_field("type", kind)
    form.add_field("title", title)
    for key, value in extra.items():
        form.add_field(key, value)
    if archive is not None:
        form.add_field("file", archive, filename="upload.zip", content_type="application/zip")
    return form


async def _post(client, form: FormData) -> dict:
    resp = await client.post("/api/upload", data=form)
    assert resp.status == 200
    return await resp.json()


@pytest.mark.asyncio
async def test_manga_upload_creates_record(client, services, library_root: Path):
    archive = zip_bytes({"p10.png": image_bytes(), "p2.png": image_bytes(), "p1.png": image_bytes((30, 90))})

    body = await _post(
        client,
        _form("MANGA", "My Title", archive, source_url="https://example.org/m", description="A manga"),
    )

    assert body["ok"], body
    data = body["data"]
    assert data["title"] == "My Title"
    assert data["kind"] == "MANGA"
    assert data["folder"] == "manga/My_Title"
    assert (library_root / "manga" / "My_Title" / "p10.png").is_file()

    record = (await services["registrar"].get(data["id"])).unwrap()
    assert record.source_url == "https://example.org/m"
    assert record.description == "A manga"
    assert record.cover_url == "/api/file/manga/My_Title/p1.png"
    assert list(Path(services["upload_tmp_dir"]).glob(".upload_*")) == []


@pytest.mark.asyncio
async def test_upload_collision_gets_unique_folder_and_title(client, services):
    archive = zip_bytes({"01.png": image_bytes()})

    first = await _post(client, _form("MANGA", "Same", archive))
    second = await _post(client, _form("MANGA", "Same", archive))

    assert first["ok"] and second["ok"]
    assert first["data"]["id"] != second["data"]["id"]
    assert second["data"]["folder"].startswith("manga/Same_")
    assert second["data"]["title"].startswith("Same (")
    stamp = second["data"]["folder"].rsplit("_", 1)[1]
    assert second["data"]["title"] == f"Same ({stamp})"


@pytest.mark.asyncio
async def test_audio_upload_uses_track_titles(client, services, monkeypatch):
    monkeypatch.setattr(metadata.mutagen, "File", lambda *_a, **_k: None)
    archive = zip_bytes({"cd/01 intro.mp3": b"\x00" * 32, "cd/02 song.mp3": b"\x00" * 16, "front.jpg": image_bytes(fmt="JPEG")})

    body = await _post(
        client,
        _form("audio", "Album", archive, track_titles=json.dumps({"cd/02 song.mp3": "The Song"})),
    )

    assert body["ok"], body
    record = (await services["registrar"].get(body["data"]["id"])).unwrap()
    tracks = record.parsed_manifest().unwrap().tracks
    assert [(t.relative_file, t.title) for t in tracks] == [("cd/01 intro.mp3", "01 intro"), ("cd/02 song.mp3", "The Song")]
    assert record.cover_url == "/api/file/audio/Album/front.jpg"


@pytest.mark.asyncio
async def test_manga_upload_without_images_reports_scanner_failure(client, services):
    body = await _post(client, _form("MANGA", "Text Only", zip_bytes({"readme.txt": b"hi"})))

    assert not body["ok"]
    assert body["code"] == "SCAN_FAILED"
    assert body["error"] == "Scanner failed: No images found in this folder!"
    assert (await services["registrar"].list_records()).unwrap() == []


@pytest.mark.asyncio
async def test_upload_refuses_zip_slip(client, library_root: Path):
    archive = zip_bytes({"ok.png": image_bytes(), "../../escape.png": b"x"})

    body = await _post(client, _form("MANGA", "Evil", archive))

    assert not body["ok"]
    assert body["code"] == "INVALID_INPUT"
    assert not (library_root / "manga" / "Evil").exists()
    assert not (library_root / "escape.png").exists()


@pytest.mark.asyncio
async def test_upload_rejects_corrupt_zip(client):
    body = await _post(client, _form("MANGA", "Corrupt", b"not a zip"))
    assert body["code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_upload_validation_errors(client):
    archive = zip_bytes({"01.png": image_bytes()})

    assert (await _post(client, _form("VIDEO", "x", archive)))["code"] == "INVALID_INPUT"
    assert (await _post(client, _form("MANGA", "  ", archive)))["code"] == "INVALID_INPUT"
    assert (await _post(client, _form("MANGA", "x", None)))["code"] == "INVALID_INPUT"
    bad_titles = _form("AUDIO", "x", archive, track_titles="[1, 2]")
    assert (await _post(client, bad_titles))["code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_upload_size_limit(client, services):
    services["max_upload_bytes"] = 64
    archive = zip_bytes({"01.png": image_bytes((200, 200))})

    body = await _post(client, _form("MANGA", "Big", archive))

    assert body["code"] == "FILE_TOO_LARGE"
    assert list(Path(services["upload_tmp_dir"]).glob(".upload_*")) == []


@pytest.mark.asyncio
async def test_upload_requires_multipart(client):
    resp = await client.post("/api/upload", json={"type": "MANGA"})
    body = await resp.json()
    assert body["code"] == "INVALID_INPUT"
    assert resp.headers.get("X-Request-ID")
