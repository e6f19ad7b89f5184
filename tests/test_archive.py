from __future__ import annotations

import os
import zipfile
from pathlib import Path

import pytest

from slopless_action.archive import build_archive
from slopless_action.errors import PackagingError


def _touch(root: Path, rel: str, text: str = "x\n") -> None:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def test_archive_excludes_deny_list(tmp_path: Path):
    src = tmp_path / "ws"
    kept = ["app.py", "src/pkg/mod.py", "README.md", "docs/build.md", "vendor/lib.js"]
    dropped = [
        ".git/config",
        "node_modules/left-pad/index.js",
        "web/node_modules/x/y.js",
        ".venv/lib/site.py",
        "src/pkg/__pycache__/mod.cpython-312.pyc",
        "dist/app.whl",
        "build/out.o",
        ".idea/workspace.xml",
        ".DS_Store",
        "src/.DS_Store",
        "src/pkg/old.pyc",
        "notes.txt.swp",
        "backup~",
    ]
    for rel in kept + dropped:
        _touch(src, rel)

    archive = build_archive(src, tmp_path / "out" / "ws.zip")

    with zipfile.ZipFile(archive) as z:
        names = z.namelist()
        assert z.read("src/pkg/mod.py") == b"x\n"

    assert sorted(names) == sorted(kept)


def test_archive_extra_excludes(tmp_path: Path):
    src = tmp_path / "ws"
    _touch(src, "app.py")
    _touch(src, "fixtures/big.json")
    _touch(src, "tests/data/sample.bin")

    archive = build_archive(src, tmp_path / "ws.zip", ["fixtures/**", "**/*.bin"])

    with zipfile.ZipFile(archive) as z:
        assert z.namelist() == ["app.py"]


def test_archive_missing_root(tmp_path: Path):
    with pytest.raises(PackagingError, match="not a directory"):
        build_archive(tmp_path / "nope", tmp_path / "ws.zip")


def test_archive_root_is_file(tmp_path: Path):
    f = tmp_path / "file.py"
    f.write_text("x", encoding="utf-8")
    with pytest.raises(PackagingError):
        build_archive(f, tmp_path / "ws.zip")


def test_archive_accepts_pre_1980_mtime(tmp_path: Path):
    src = tmp_path / "ws"
    _touch(src, "old.py", "legacy\n")
    os.utime(src / "old.py", (0, 0))

    archive = build_archive(src, tmp_path / "ws.zip")

    with zipfile.ZipFile(archive) as z:
        assert z.namelist() == ["old.py"]
        assert z.read("old.py") == b"legacy\n"
        assert z.getinfo("old.py").date_time[0] == 1980
