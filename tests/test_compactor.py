"""Tests for DirectoryCompactor."""

import os

import pytest

from conftest import write_files
from tree_mirror.mirror.compactor import DirectoryCompactor, is_junk
from tree_mirror.mirror.progress import ProgressEmitter


class TestIsJunk:
    @pytest.mark.parametrize(
        "name", [".DS_Store", ".a.png.1234.part", "Thumbs.db", "THUMBS.DB", "desktop.ini", "ehthumbs.db"]
    )
    def test_junk(self, name):
        assert is_junk(name)

    @pytest.mark.parametrize("name", ["a.png", "thumbs.dbx", "-disabled.png"])
    def test_not_junk(self, name):
        assert not is_junk(name)


class TestCompact:
    """DirectoryCompactor.compact()"""

    def test_removes_nested_empty_directories(self, mirror_root):
        (mirror_root / "a" / "b" / "c").mkdir(parents=True)
        (mirror_root / "d").mkdir()
        assert DirectoryCompactor().compact(mirror_root) == 4
        assert list(mirror_root.iterdir()) == []

    def test_never_removes_root(self, mirror_root):
        assert DirectoryCompactor().compact(mirror_root) == 0
        assert mirror_root.is_dir()

    def test_root_junk_is_kept(self, mirror_root):
        write_files(mirror_root, {"Thumbs.db": "x"})
        DirectoryCompactor().compact(mirror_root)
        assert (mirror_root / "Thumbs.db").exists()

    def test_junk_only_directory_removed(self, mirror_root):
        write_files(mirror_root, {"d/Thumbs.db": "x", "d/.DS_Store": "y", "d/e/desktop.ini": "z"})
        assert DirectoryCompactor().compact(mirror_root) == 2
        assert not (mirror_root / "d").exists()

    def test_directory_with_files_kept(self, mirror_root):
        write_files(mirror_root, {"d/a.png": "a", "d/Thumbs.db": "x"})
        assert DirectoryCompactor().compact(mirror_root) == 0
        assert sorted(p.name for p in (mirror_root / "d").iterdir()) == ["a.png"]

    def test_hidden_and_reserved_dirs_untouched(self, mirror_root):
        (mirror_root / ".tree_mirror").mkdir()
        (mirror_root / "user-customs" / "empty").mkdir(parents=True)
        assert DirectoryCompactor().compact(mirror_root) == 0
        assert (mirror_root / ".tree_mirror").is_dir()
        assert (mirror_root / "user-customs" / "empty").is_dir()

    def test_missing_root_is_noop(self, tmp_path):
        assert DirectoryCompactor().compact(tmp_path / "absent") == 0

    @pytest.mark.skipif(
        os.name == "nt" or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="permission bits not enforced",
    )
    def test_errors_are_reported_not_raised(self, mirror_root):
        locked = mirror_root / "locked"
        (locked / "inner").mkdir(parents=True)
        (mirror_root / "free").mkdir()
        locked.chmod(0o500)
        events = []
        try:
            removed = DirectoryCompactor(
                progress=ProgressEmitter(events.append)
            ).compact(mirror_root)
        finally:
            locked.chmod(0o700)

        assert removed == 1
        assert any(e.stage == "cleanup" for e in events)
