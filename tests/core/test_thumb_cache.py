import hashlib
from pathlib import Path

import pytest
from PIL import Image

from media_factory import write_image, write_junk
from mvault_shared.thumb_cache import render_thumbnail, thumb_cache_filename, thumb_cache_key, thumb_cache_path


def test_cache_key_is_md5_of_path_string() -> None:
    path = "/srv/library/manga/Title/01.jpg"
    assert thumb_cache_key(path) == hashlib.md5(path.encode("utf-8")).hexdigest()
    assert thumb_cache_filename(path) == hashlib.md5(path.encode("utf-8")).hexdigest() + "_thumb.webp"


def test_cache_key_accepts_path_objects() -> None:
    assert thumb_cache_key(Path("/a/b.png")) == thumb_cache_key("/a/b.png")


def test_cache_path_is_flat(tmp_path: Path) -> None:
    dest = thumb_cache_path(tmp_path / "cache", "/x/y/z.png")
    assert dest.parent == tmp_path / "cache"


def test_render_downscales_to_height(tmp_path: Path) -> None:
    src = write_image(tmp_path / "big.png", size=(400, 600))
    dest = render_thumbnail(src, tmp_path / "out" / "t.webp", height=300, quality=75)
    with Image.open(dest) as img:
        assert img.format == "WEBP"
        assert img.size == (200, 300)


def test_render_never_enlarges(tmp_path: Path) -> None:
    src = write_image(tmp_path / "small.png", size=(50, 80))
    dest = render_thumbnail(src, tmp_path / "t.webp", height=300)
    with Image.open(dest) as img:
        assert img.size == (50, 80)


def test_render_raises_on_undecodable_source(tmp_path: Path) -> None:
    src = write_junk(tmp_path / "broken.jpg")
    with pytest.raises(OSError):
        render_thumbnail(src, tmp_path / "t.webp")
    assert not (tmp_path / "t.webp").exists()
