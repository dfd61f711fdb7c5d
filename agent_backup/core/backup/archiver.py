from __future__ import annotations

import json
from typing import Any, Dict

from agent_backup.core.backup.models import Archive
from agent_backup.core.errors import ArchiveFormatError
from agent_backup.core.io import atomic_write_json


def write_archive(path: str, archive: Archive) -> None:
    atomic_write_json(path, archive.to_dict())


def read_archive(path: str) -> Dict[str, Any]:
    """
    Returns the raw JSON object. Validation (version gate first) is left to
    codec.load_archive so the caller sees VersionError before schema errors.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except json.JSONDecodeError as e:
        raise ArchiveFormatError(f"Backup file {path!r} is not valid JSON: {e}", path=path) from e
    except UnicodeDecodeError as e:
        raise ArchiveFormatError(f"Backup file {path!r} is not UTF-8 text.", path=path) from e
    if not isinstance(obj, dict):
        raise ArchiveFormatError(f"Backup file {path!r} must contain a JSON object.", path=path)
    return obj
