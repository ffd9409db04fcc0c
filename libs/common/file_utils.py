#!/usr/bin/env python3
"""File utility helpers shared across tooling and tests."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def atomic_write_text(path: Path, content: str) -> Path:
    """Write ``content`` to ``path`` via temp file + fsync + rename.

    Readers never observe a partially written file: either the previous
    content or the complete new content is visible.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return path


def atomic_write_json(path: Path, payload: Any) -> Path:
    """Atomically write ``payload`` as indented JSON."""
    return atomic_write_text(path, json.dumps(payload, indent=2, default=str) + "\n")


def read_json(path: Path) -> Any:
    """Read and parse a JSON document."""
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)
