import pytest

from mvault_backend.adapters.db import CURRENT_SCHEMA_VERSION, get_schema_version
from mvault_backend.features.library.manifest import MangaManifest, PageEntry
from mvault_backend.shared import MediaKind

FOLDER = "/data/library/manga/Title"


def _manifest(*files: str) -> MangaManifest:
    return MangaManifest(
        pages=tuple(
            PageEntry(relative_file=f, width=1, height=1, size_bytes=10, ordinal_index=i)
            for i, f in enumerate(files)
        )
    )


async def _register(registrar, manifest, title="Title", folder=FOLDER):
    return await registrar.register(
        folder, MediaKind.MANGA, title, manifest, len(manifest.pages), 10 * len(manifest.pages), "/api/file/manga/Title/1.jpg"
    )


@pytest.mark.asyncio
async def test_schema_is_stamped(services):
    assert await get_schema_version(services["db"]) == CURRENT_SCHEMA_VERSION


@pytest.mark.asyncio
async def test_register_creates_record(services):
    registrar = services["registrar"]
    res = await _register(registrar, _manifest("1.jpg", "2.jpg"))
    assert res.ok, res.error

    record = (await registrar.get(res.data)).unwrap()
    assert record.folder_path == FOLDER
    assert record.kind is MediaKind.MANGA
    assert record.item_count == 2
    assert record.total_size == 20
    assert record.cover_url == "/api/file/manga/Title/1.jpg"
    assert record.source_url is None
    assert record.created_at == record.updated_at
    assert record.parsed_manifest().unwrap() == _manifest("1.jpg", "2.jpg")


@pytest.mark.asyncio
async def test_register_is_an_upsert_by_folder(services):
    registrar = services["registrar"]
    first = (await _register(registrar, _manifest("1.jpg"))).unwrap()
    before = (await registrar.get(first)).unwrap()

    second = (await _register(registrar, _manifest("1.jpg", "2.jpg"), title="Renamed")).unwrap()
    after = (await registrar.get(second)).unwrap()

    assert second == first
    assert after.created_at == before.created_at
    assert after.updated_at > before.updated_at
    assert after.title == "Renamed"
    assert after.item_count == 2
    listed = (await registrar.list_records()).unwrap()
    assert [r.id for r in listed] == [first]


@pytest.mark.asyncio
async def test_rescan_keeps_patched_fields(services):
    registrar = services["registrar"]
    record_id = (await _register(registrar, _manifest("1.jpg"))).unwrap()
    patched = await registrar.patch(record_id, source_url="https://example.org/x", description="desc")
    assert patched.ok

    await _register(registrar, _manifest("1.jpg"))
    record = (await registrar.get(record_id)).unwrap()
    assert record.source_url == "https://example.org/x"
    assert record.description == "desc"


@pytest.mark.asyncio
async def test_patch_and_delete_unknown_id(services):
    registrar = services["registrar"]
    assert (await registrar.patch("missing", source_url="x")).code == "NOT_FOUND"
    assert (await registrar.delete("missing")).code == "NOT_FOUND"
    assert (await registrar.get("missing")).code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_list_filters_by_kind_and_delete(services):
    registrar = services["registrar"]
    manga_id = (await _register(registrar, _manifest("1.jpg"))).unwrap()
    other = await registrar.register(
        "/data/library/manga/Other", MediaKind.MANGA, "Other", _manifest("a.jpg"), 1, 10, None
    )
    assert other.ok

    assert len((await registrar.list_records(kind=MediaKind.MANGA)).unwrap()) == 2
    assert (await registrar.list_records(kind=MediaKind.AUDIO)).unwrap() == []

    assert (await registrar.delete(manga_id)).ok
    assert (await registrar.get_by_path(FOLDER)).code == "NOT_FOUND"
    assert (await registrar.get_by_path("/data/library/manga/Other")).unwrap().id == other.data


@pytest.mark.asyncio
async def test_register_reports_db_errors(services):
    registrar = services["registrar"]
    await services["db"].aexecutescript("DROP TABLE media_items;")

    res = await _register(registrar, _manifest("1.jpg"))

    assert not res.ok
    assert res.code == "DB_ERROR"


@pytest.mark.asyncio
async def test_list_clamps_out_of_range_paging(services):
    registrar = services["registrar"]
    await _register(registrar, _manifest("1.jpg"))

    res = await registrar.list_records(limit=10**6, offset=10**20)

    assert res.ok, res.error
    assert res.data == []
    assert res.meta == {"limit": 1000, "offset": 2**63 - 1}


@pytest.mark.asyncio
async def test_adapter_reports_integer_overflow(services):
    res = await services["db"].aquery("SELECT ? AS v", (10**20,))

    assert not res.ok
    assert res.code == "DB_ERROR"
