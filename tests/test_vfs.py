from __future__ import annotations

from pathlib import Path

import pytest

from blamels.vfs import OverlayFileSystem


def test_reads_fall_through_to_disk(tmp_path: Path) -> None:
    path = tmp_path / "a.txt"
    path.write_text("on disk\n")

    assert OverlayFileSystem().read_text(path) == "on disk\n"


def test_memory_layer_shadows_disk(tmp_path: Path) -> None:
    path = tmp_path / "a.txt"
    path.write_text("on disk\n")
    fs = OverlayFileSystem()

    fs.write_text(path, "unsaved\n")

    assert fs.read_text(path) == "unsaved\n"
    assert path.read_text() == "on disk\n"


def test_latest_write_wins(tmp_path: Path) -> None:
    fs = OverlayFileSystem()
    path = tmp_path / "a.txt"

    fs.write_text(path, "first\n")
    fs.write_text(path, "second\n")

    assert fs.read_text(path) == "second\n"


def test_create_file_truncates_and_publishes_on_close(tmp_path: Path) -> None:
    fs = OverlayFileSystem()
    path = tmp_path / "new.txt"
    fs.write_text(path, "old contents that are longer\n")

    with fs.create_file(path) as sink:
        sink.write(b"new\n")

    with fs.open_file(path) as handle:
        assert handle.read() == b"new\n"


def test_buffer_only_paths_exist(tmp_path: Path) -> None:
    fs = OverlayFileSystem()
    path = tmp_path / "untitled.txt"

    assert not fs.exists(path)
    fs.write_text(path, "x")
    assert fs.exists(path)
    assert not path.exists()


def test_path_spellings_share_one_entry(tmp_path: Path) -> None:
    fs = OverlayFileSystem()

    fs.write_text(str(tmp_path / "a.txt"), "x")

    assert fs.read_text(tmp_path / "a.txt") == "x"


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        OverlayFileSystem().open_file(tmp_path / "nope.txt")
