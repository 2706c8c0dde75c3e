# src/cache/atomic_io.py - v1
"""Atomic file writes for cache entries and metadata.

Data is written to a temp file in the target directory, flushed and fsynced,
then moved over the target with os.replace. Readers therefore see either the
previous file or the complete new one, never a partial write.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

TEMP_SUFFIX = ".tmp"


def write_text_atomic(path: Path, text: str, *, encoding: str = "utf-8") -> None:
    """Write text to `path` atomically.

    Raises:
        OSError: If the temp file cannot be written or renamed.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f"{p.name}.", suffix=TEMP_SUFFIX, dir=str(p.parent))
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, p)
    finally:
        # Only left behind when the write or the rename failed.
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
