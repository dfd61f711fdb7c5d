from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from agent_backup.core import crypto
from agent_backup.core.backup.collector import collect_section
from agent_backup.core.backup.hasher import canonical_json
from agent_backup.core.backup.models import (
    BACKUP_VERSION,
    AgentIdentity,
    Archive,
    EncryptedSection,
    ImportResult,
    KdfParams,
    PlainSection,
    RestoredCounts,
    iso_now,
    section_to_dict,
)
from agent_backup.core.backup.restorer import restore_records
from agent_backup.core.config import ExportOptions, ImportOptions
from agent_backup.core.errors import (
    ArchiveFormatError,
    ConfigurationError,
    DecryptionError,
    ValidationError,
    VersionError,
)
from agent_backup.core.logger import get_logger


# ---- section sealing ----
def seal_section(section: PlainSection, password: str, *, kdf: KdfParams) -> EncryptedSection:
    """Encrypt one plain section under its own salt, IV and derived key."""
    iv = crypto.random_iv()
    salt = crypto.random_salt()
    key = crypto.scrypt_key(password, salt, n=kdf.n, r=kdf.r, p=kdf.p)
    ciphertext, tag = crypto.aesgcm_encrypt(key, iv, canonical_json(section_to_dict(section)))
    return EncryptedSection(
        algorithm=crypto.ALGORITHM,
        kdf=kdf.model_dump(),
        iv=iv.hex(),
        salt=salt.hex(),
        auth_tag=tag.hex(),
        data=ciphertext.hex(),
    )


def section_kdf(section: EncryptedSection, *, label: str = "section") -> Optional[KdfParams]:
    """Bounded scrypt parameters of a sealed section, or None for the legacy derivation."""
    if section.kdf is None:
        return None
    try:
        return KdfParams.model_validate(section.kdf)
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        raise DecryptionError(
            f"Unsupported key derivation parameters in {label}: {first.get('msg', 'invalid')}.", section=label
        ) from e


def open_section(section: EncryptedSection, password: str, *, label: str = "section") -> PlainSection:
    """
    Authenticate and decrypt one section. Every failure mode (unknown cipher or KDF,
    bad hex, bad sizes, tag mismatch, undecodable plaintext) is a DecryptionError.
    """
    if section.algorithm != crypto.ALGORITHM:
        raise DecryptionError(f"Unsupported cipher {section.algorithm!r} in {label}.", section=label)
    try:
        iv = bytes.fromhex(section.iv)
        salt = bytes.fromhex(section.salt)
        tag = bytes.fromhex(section.auth_tag)
        ciphertext = bytes.fromhex(section.data)
    except ValueError as e:
        raise DecryptionError(f"Malformed encoding in {label}.", section=label) from e
    kdf = section_kdf(section, label=label)
    if kdf is not None:
        key = crypto.scrypt_key(password, salt, n=kdf.n, r=kdf.r, p=kdf.p)
    else:
        key = crypto.legacy_sha256_key(password, salt)
    try:
        plaintext = crypto.aesgcm_decrypt(key, iv, ciphertext, tag)
    except crypto.InvalidTag as e:
        raise DecryptionError(f"Unable to decrypt {label}: wrong password or corrupted data.", section=label) from e
    except ValueError as e:
        raise DecryptionError(f"Malformed ciphertext in {label}: {e}", section=label) from e
    try:
        return PlainSection.model_validate(json.loads(plaintext.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError, PydanticValidationError) as e:
        raise DecryptionError(f"Decrypted {label} is not a valid file section.", section=label) from e


# ---- loading ----
def check_version(version: Any) -> None:
    if version != BACKUP_VERSION:
        raise VersionError(f"Unsupported backup version: {version}", version=version, supported=BACKUP_VERSION)


def load_archive(data: Union[Archive, Mapping[str, Any]]) -> Archive:
    """Version gate first, then schema validation."""
    if isinstance(data, Archive):
        check_version(data.version)
        return data
    if not isinstance(data, Mapping):
        raise ArchiveFormatError("Backup must be a JSON object.")
    check_version(data.get("version"))
    try:
        return Archive.model_validate(dict(data))
    except PydanticValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        where = ".".join(str(x) for x in first.get("loc", ()))
        raise ArchiveFormatError(
            f"Backup file is malformed ({e.error_count()} error(s); first at {where or '<root>'}: {first.get('msg', '')}).",
            errors=e.error_count(),
        ) from e


# ---- export / import ----
def export_archive(
    *,
    name: str,
    email: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    credentials_paths: Iterable[str] = (),
    memory_paths: Iterable[str] = (),
    options: ExportOptions = ExportOptions(),
    logger: Any = None,
) -> Archive:
    log = get_logger(logger)
    if not name or not str(name).strip():
        raise ValidationError("Agent name is required.", field="name")
    if options.encrypt and not options.password:
        raise ConfigurationError("Encryption requested but no password provided.")

    credentials, cred_warnings = collect_section(options.workdir, credentials_paths, logger=log)
    memory, mem_warnings = collect_section(options.workdir, memory_paths, logger=log)

    exported = iso_now()
    meta = dict(metadata or {})
    agent = AgentIdentity(name=name, email=email, metadata=meta, created=str(meta.get("created") or exported))

    cred_section: Union[PlainSection, EncryptedSection] = credentials
    mem_section: Union[PlainSection, EncryptedSection] = memory
    if options.encrypt:
        cred_section = seal_section(credentials, options.password, kdf=options.kdf)
        mem_section = seal_section(memory, options.password, kdf=options.kdf)

    archive = Archive(
        version=BACKUP_VERSION,
        exported=exported,
        agent=agent,
        encrypted=True if options.encrypt else None,
        credentials=cred_section,
        memory=mem_section,
        platforms={},
    )
    log.info(
        f"Exported backup for {name}: {len(credentials.files)} credentials, {len(memory.files)} memory files"
        f" (encrypted={bool(options.encrypt)}, warnings={len(cred_warnings) + len(mem_warnings)})"
    )
    return archive


def decrypt_sections(archive: Archive, password: Optional[str]) -> Tuple[PlainSection, PlainSection]:
    """Returns (credentials, memory) as plain sections."""
    if not archive.is_encrypted:
        return archive.credentials, archive.memory
    if not password:
        raise ConfigurationError("Backup is encrypted but no password provided.")
    credentials = open_section(archive.credentials, password, label="credentials")
    memory = open_section(archive.memory, password, label="memory")
    return credentials, memory


def import_archive(
    archive: Union[Archive, Mapping[str, Any]],
    options: ImportOptions = ImportOptions(),
    *,
    logger: Any = None,
) -> ImportResult:
    log = get_logger(logger)
    archive = load_archive(archive)
    # both sections are opened before anything touches the target directory
    credentials, memory = decrypt_sections(archive, options.password)

    cred = restore_records(credentials.files, target_dir=options.target_dir, overwrite=options.overwrite, logger=log)
    mem = restore_records(memory.files, target_dir=options.target_dir, overwrite=options.overwrite, logger=log)

    result = ImportResult(
        agent=archive.agent,
        restored=RestoredCounts(credentials=len(cred.written), memory=len(mem.written)),
        skipped=cred.skipped + mem.skipped,
        failed=cred.failed + mem.failed,
    )
    log.info(
        f"Restored backup for {archive.agent.name}: {result.restored.credentials} credentials,"
        f" {result.restored.memory} memory files ({len(result.skipped)} skipped, {len(result.failed)} failed)"
    )
    return result
