from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Iterable, List

from agent_backup.core.backup.models import FileRecord
from agent_backup.core.errors import PathEscapeError
from agent_backup.core.io import atomic_write_text
from agent_backup.core.logger import get_logger


@dataclass
class RestoreTally:
    written: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def resolve_target(target_dir: str, rel: str) -> str:
    """
    Map a stored relative path onto `target_dir`. The canonical result must stay
    inside the canonical target root; anything else is rejected, never clamped.
    """
    if not rel or os.path.isabs(rel) or rel.startswith(("/", "\\")):
        raise PathEscapeError(f"Refusing to restore {rel!r}: not a relative path.", path=rel)
    root = os.path.realpath(target_dir)
    dest = os.path.realpath(os.path.join(root, rel))
    try:
        inside = os.path.commonpath([root, dest]) == root
    except ValueError:
        inside = False
    if not inside or dest == root:
        raise PathEscapeError(f"Refusing to restore {rel!r}: resolves outside {target_dir!r}.", path=rel)
    return dest


def restore_records(records: Iterable[FileRecord], *, target_dir: str, overwrite: bool, logger: Any = None) -> RestoreTally:
    """Write records in order. Per-file problems are logged and tallied, never raised."""
    log = get_logger(logger)
    tally = RestoreTally()
    for rec in records:
        try:
            dest = resolve_target(target_dir, rec.path)
        except PathEscapeError as e:
            log.warning(str(e))
            tally.failed.append(rec.path)
            continue
        # the unresolved path too: a dangling symlink counts as an existing file
        if not overwrite and (os.path.lexists(os.path.join(target_dir, rec.path)) or os.path.lexists(dest)):
            log.warning(f"Skipping existing file: {rec.path}")
            tally.skipped.append(rec.path)
            continue
        try:
            atomic_write_text(dest, rec.content)
        except OSError as e:
            log.warning(f"Failed to restore {rec.path!r}: {e.strerror or e}")
            tally.failed.append(rec.path)
            continue
        tally.written.append(rec.path)
    return tally
