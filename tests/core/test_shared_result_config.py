import pytest

from mvault_backend import config
from mvault_backend.shared import ErrorCode, MediaKind, Result, classify_file, sanitize_error_message
from mvault_backend.utils import parse_bool, to_posix


def test_result_ok_and_err() -> None:
    ok = Result.Ok("abc", source="scan")
    assert ok.ok and ok.unwrap() == "abc" and ok.meta == {"source": "scan"}

    err = Result.Err(ErrorCode.NOT_FOUND, "No images found in this folder!")
    assert not err.ok
    assert err.code == "NOT_FOUND"
    with pytest.raises(ValueError, match="NOT_FOUND"):
        err.unwrap()


def test_sanitize_error_message_masks_paths() -> None:
    msg = sanitize_error_message(OSError("cannot open /srv/secret/x.zip"), "Upload failed")
    assert msg == "Upload failed: cannot open [path]"
    assert sanitize_error_message(None, "Upload failed") == "Upload failed"


def test_sanitize_error_message_labels_known_roots(tmp_path) -> None:
    library = tmp_path / "library"
    spooled = library / "uploads" / ".upload_1.zip"
    target = library / "manga" / "T"
    exc = OSError(f"No space left: '{spooled}' -> {target}")

    msg = sanitize_error_message(exc, "Invalid archive", {"library": library, "uploads": library / "uploads"})

    assert msg == "Invalid archive: No space left: '[uploads]/.upload_1.zip' -> [library]/manga/T"


def test_classify_file() -> None:
    assert classify_file("01.JPG") == "image"
    assert classify_file("track.flac") == "audio"
    assert classify_file("notes.txt") == "unknown"


def test_media_kind_values() -> None:
    assert MediaKind("MANGA") is MediaKind.MANGA
    assert MediaKind.AUDIO.value == "AUDIO"


def test_env_int_clamps_and_falls_back(monkeypatch) -> None:
    monkeypatch.setenv("MVAULT_TEST_INT", "5000")
    assert config._env_int(300, "MVAULT_TEST_INT", min_value=16, max_value=4096) == 4096
    monkeypatch.setenv("MVAULT_TEST_INT", "nope")
    assert config._env_int(300, "MVAULT_TEST_INT") == 300
    monkeypatch.delenv("MVAULT_TEST_INT")
    assert config._env_int(300, "MVAULT_TEST_INT") == 300


def test_env_float_clamps(monkeypatch) -> None:
    monkeypatch.setenv("MVAULT_TEST_FLOAT", "0.01")
    assert config._env_float(30.0, "MVAULT_TEST_FLOAT", min_value=1.0) == 1.0


def test_default_thumbnail_settings() -> None:
    assert config.THUMB_HEIGHT == 300
    assert config.THUMB_QUALITY == 75
    assert config.THUMB_BATCH_SIZE == 5


def test_initialize_directories_with_overrides(tmp_path) -> None:
    paths = config.initialize_directories(tmp_path / "library", tmp_path / "cache", tmp_path / "db" / "x.db")
    assert paths["library_root"].is_dir()
    assert paths["upload_tmp_dir"].is_dir()
    assert paths["cache_dir"].is_dir()
    assert (tmp_path / "db").is_dir()


def test_utils() -> None:
    assert parse_bool("on") is True
    assert parse_bool("off", default=True) is False
    assert parse_bool("maybe", default=True) is True
    assert to_posix("a\\b\\c.jpg") == "a/b/c.jpg"
