from __future__ import annotations

import os
from typing import Any, Iterable, List, Tuple

from agent_backup.core.backup.models import FileRecord, PlainSection, iso_now
from agent_backup.core.logger import get_logger


def _inside(root: str, path: str) -> bool:
    try:
        return os.path.commonpath([root, path]) == root
    except ValueError:
        return False


def collect_files(root: str, paths: Iterable[str], *, logger: Any = None) -> Tuple[List[FileRecord], List[str]]:
    """
    Returns (records, warnings). Records keep input order and the relative path
    as supplied; unreadable entries are skipped with a warning.
    """
    log = get_logger(logger)
    base = os.path.abspath(root)
    records: List[FileRecord] = []
    warnings: List[str] = []

    def skip(rel: str, reason: str) -> None:
        msg = f"Failed to read {rel!r}: {reason}"
        warnings.append(msg)
        log.warning(msg)

    for rel in paths:
        if not rel:
            skip(rel, "empty path")
            continue
        if os.path.isabs(rel):
            skip(rel, "absolute paths are not portable")
            continue
        # lexical check: an in-root symlink keeps its portable relative path
        full = os.path.normpath(os.path.join(base, rel))
        if not _inside(base, full):
            skip(rel, "path escapes the working directory")
            continue
        try:
            with open(full, "r", encoding="utf-8", newline="") as f:
                content = f.read()
        except UnicodeDecodeError:
            skip(rel, "not valid UTF-8 text")
            continue
        except OSError as e:
            skip(rel, e.strerror or str(e))
            continue
        records.append(FileRecord(path=rel, content=content, updated=iso_now()))
    return records, warnings


def collect_section(root: str, paths: Iterable[str], *, logger: Any = None) -> Tuple[PlainSection, List[str]]:
    records, warnings = collect_files(root, paths, logger=logger)
    return PlainSection(files=records), warnings
