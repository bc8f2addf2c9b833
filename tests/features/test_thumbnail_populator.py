import asyncio
from pathlib import Path

import pytest
from PIL import Image

from media_factory import write_image, write_junk
from mvault_backend.features.library import thumbnails as thumbs_mod
from mvault_backend.features.library.manifest import PageEntry
from mvault_backend.features.library.thumbnails import ThumbnailCachePopulator
from mvault_shared.thumb_cache import thumb_cache_path


def _entries(*files: str) -> tuple[PageEntry, ...]:
    return tuple(
        PageEntry(relative_file=f, width=0, height=0, size_bytes=0, ordinal_index=i) for i, f in enumerate(files)
    )


@pytest.mark.asyncio
async def test_populate_generates_skips_and_counts_failures(tmp_path: Path) -> None:
    folder = tmp_path / "library" / "manga" / "T"
    write_image(folder / "1.png", size=(100, 900))
    write_image(folder / "2.png", size=(10, 10))
    write_junk(folder / "3.jpg")
    cache = tmp_path / "cache"
    populator = ThumbnailCachePopulator(cache, batch_size=2, height=300, quality=75)

    stats = await populator.populate("rid", str(folder), _entries("1.png", "2.png", "3.jpg"))

    assert stats == {"generated": 2, "skipped": 0, "failed": 1}
    with Image.open(thumb_cache_path(cache, folder / "1.png")) as img:
        assert img.size == (33, 300)
    assert thumb_cache_path(cache, folder / "2.png").is_file()
    assert not thumb_cache_path(cache, folder / "3.jpg").exists()

    again = await populator.populate("rid", str(folder), _entries("1.png", "2.png"))
    assert again == {"generated": 0, "skipped": 2, "failed": 0}


@pytest.mark.asyncio
async def test_populate_respects_batch_size(tmp_path: Path, monkeypatch) -> None:
    folder = tmp_path / "f"
    for i in range(7):
        write_image(folder / f"{i}.png", size=(4, 4))
    active = 0
    peak = 0

    def _render(source, dest, *, height, quality):
        raise AssertionError("rendering is intercepted in _to_thread")

    async def _to_thread(fn, *args, **kwargs):
        if fn is _render:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            Path(args[1]).write_bytes(b"webp")
            return None
        return fn(*args, **kwargs)

    monkeypatch.setattr(thumbs_mod, "render_thumbnail", _render)
    monkeypatch.setattr(thumbs_mod.asyncio, "to_thread", _to_thread)
    populator = ThumbnailCachePopulator(tmp_path / "cache", batch_size=3)

    stats = await populator.populate("rid", str(folder), _entries(*[f"{i}.png" for i in range(7)]))

    assert stats["generated"] == 7
    assert peak == 3


@pytest.mark.asyncio
async def test_schedule_runs_detached_and_swallows_errors(tmp_path: Path, monkeypatch) -> None:
    populator = ThumbnailCachePopulator(tmp_path / "cache")

    async def _explode(*_args, **_kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(populator, "populate", _explode)
    task = populator.schedule("rid", str(tmp_path), _entries("1.png"))

    assert await task is None
    await populator.wait_idle()
    assert populator.pending == 0


@pytest.mark.asyncio
async def test_schedule_returns_stats_when_done(tmp_path: Path) -> None:
    folder = tmp_path / "f"
    write_image(folder / "a.png")
    populator = ThumbnailCachePopulator(tmp_path / "cache")

    task = populator.schedule("rid", str(folder), _entries("a.png"))
    await populator.wait_idle()

    assert task.done()
    assert task.result() == {"generated": 1, "skipped": 0, "failed": 0}
