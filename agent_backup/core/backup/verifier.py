from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple, Union

from agent_backup.core import crypto
from agent_backup.core.backup.codec import load_archive, open_section, section_kdf
from agent_backup.core.backup.hasher import fingerprint
from agent_backup.core.backup.models import Archive, EncryptedSection, PlainSection
from agent_backup.core.errors import BackupError, DecryptionError


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    errors: List[str]
    fingerprint: Optional[str] = None
    version: Optional[str] = None
    agent_name: Optional[str] = None
    exported: Optional[str] = None
    encrypted: bool = False
    checked_files: int = 0
    decrypted: bool = False
    warnings: List[str] = field(default_factory=list)


def _unsafe_path(rel: str) -> bool:
    if os.path.isabs(rel) or rel.startswith(("/", "\\")):
        return True
    norm = os.path.normpath(rel.replace("\\", "/"))
    return norm in {".", ".."} or norm.startswith("../")


def _check_sealed(label: str, s: EncryptedSection) -> Tuple[List[str], List[str]]:
    """Returns (errors, warnings)."""
    errors: List[str] = []
    warnings: List[str] = []
    if s.algorithm != crypto.ALGORITHM:
        errors.append(f"{label}: unsupported cipher {s.algorithm!r}")
    for name, value, size in (
        ("iv", s.iv, crypto.IV_SIZE),
        ("salt", s.salt, None),
        ("authTag", s.auth_tag, crypto.TAG_SIZE),
        ("data", s.data, None),
    ):
        try:
            raw = bytes.fromhex(value)
        except ValueError:
            errors.append(f"{label}: {name} is not valid hex")
            continue
        if size is not None and len(raw) != size:
            errors.append(f"{label}: {name} must be {size} bytes, got {len(raw)}")
    if s.kdf is None:
        warnings.append(f"{label}: no kdf parameters (legacy sha256 key derivation)")
    else:
        try:
            section_kdf(s, label=label)
        except DecryptionError as e:
            errors.append(e.user_message)
    return errors, warnings


def verify_archive(data: Union[Archive, Mapping[str, Any]], *, password: Optional[str] = None) -> VerifyResult:
    """
    Structural checks without touching the filesystem. With a password, both
    encrypted sections are also authenticated.
    """
    raw_version = data.version if isinstance(data, Archive) else (data.get("version") if isinstance(data, Mapping) else None)
    try:
        archive = load_archive(data)
    except BackupError as e:
        return VerifyResult(ok=False, errors=[e.user_message], version=raw_version)

    errors: List[str] = []
    warnings: List[str] = []
    checked = 0
    decrypted = False
    sections = (("credentials", archive.credentials), ("memory", archive.memory))
    for label, s in sections:
        if isinstance(s, EncryptedSection):
            errs, warns = _check_sealed(label, s)
            errors.extend(errs)
            warnings.extend(warns)
        else:
            for rec in s.files:
                checked += 1
                if _unsafe_path(rec.path):
                    errors.append(f"{label}: unsafe path {rec.path!r}")

    if archive.is_encrypted and password and not errors:
        try:
            for label, s in sections:
                plain: PlainSection = open_section(s, password, label=label)
                checked += len(plain.files)
                for rec in plain.files:
                    if _unsafe_path(rec.path):
                        errors.append(f"{label}: unsafe path {rec.path!r}")
            decrypted = True
        except BackupError as e:
            errors.append(e.user_message)

    return VerifyResult(
        ok=not errors,
        errors=errors,
        fingerprint=fingerprint(archive),
        version=archive.version,
        agent_name=archive.agent.name,
        exported=archive.exported,
        encrypted=archive.is_encrypted,
        checked_files=checked,
        decrypted=decrypted,
        warnings=warnings,
    )
