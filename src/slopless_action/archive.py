from __future__ import annotations
import logging
import os
import zipfile
from pathlib import Path
from typing import Iterable

from slopless_action.errors import PackagingError
from slopless_action.utils import iter_files

log = logging.getLogger("slopless_action")


def build_archive(root: Path, dest: Path, extra_excludes: Iterable[str] = ()) -> Path:
    """
    Zips every file under root into dest, keeping paths relative to root
    and skipping VCS metadata, dependency, cache and build directories.
    """
    if not root.is_dir():
        raise PackagingError(f"Scan path is not a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise PackagingError(f"Scan path is not readable: {root}")

    count = 0
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False) as z:
            for p in iter_files(root, extra_excludes):
                z.write(p, arcname=p.relative_to(root).as_posix())
                count += 1
    except (OSError, ValueError) as e:
        raise PackagingError(f"Failed to archive {root}: {e}") from e

    log.info("Packaged %d files from %s (%d bytes)", count, root, dest.stat().st_size)
    return dest
