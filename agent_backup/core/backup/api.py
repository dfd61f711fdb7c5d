from __future__ import annotations

import time
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from agent_backup.core.backup.archiver import read_archive, write_archive
from agent_backup.core.backup.codec import export_archive, import_archive, load_archive
from agent_backup.core.backup.hasher import fingerprint
from agent_backup.core.backup.models import Archive, ImportResult
from agent_backup.core.backup.verifier import VerifyResult, verify_archive
from agent_backup.core.config import BackupSettings, ExportOptions, ImportOptions
from agent_backup.core.logger import get_logger


class BackupManager:
    """
    Entry point used by the CLI. Holds only read-only settings and a logger;
    every call receives its own options value.
    """

    def __init__(self, *, settings: Optional[BackupSettings] = None, logger: Any = None):
        self.settings = settings or BackupSettings()
        self.logger = get_logger(logger)

    def export_options(self, *, workdir: str = ".", encrypt: bool = False, password: Optional[str] = None) -> ExportOptions:
        return ExportOptions(workdir=workdir, encrypt=encrypt, password=password, kdf=self.settings.kdf)

    def create_backup(
        self,
        *,
        name: str,
        email: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        credentials_paths: Iterable[str] = (),
        memory_paths: Iterable[str] = (),
        options: ExportOptions,
        output: Optional[str] = None,
    ) -> Archive:
        t0 = time.time()
        archive = export_archive(
            name=name,
            email=email,
            metadata=metadata,
            credentials_paths=credentials_paths,
            memory_paths=memory_paths,
            options=options,
            logger=self.logger,
        )
        if output:
            write_archive(output, archive)
            self.logger.info(f"Backup written to {output} in {(time.time() - t0) * 1000.0:.0f} ms")
        return archive

    def load_backup(self, path: str) -> Archive:
        return load_archive(read_archive(path))

    def restore_backup(self, source: Union[str, Archive, Mapping[str, Any]], *, options: ImportOptions) -> ImportResult:
        data = read_archive(source) if isinstance(source, str) else source
        return import_archive(data, options, logger=self.logger)

    def verify_backup(self, source: Union[str, Archive, Mapping[str, Any]], *, password: Optional[str] = None) -> VerifyResult:
        data = read_archive(source) if isinstance(source, str) else source
        res = verify_archive(data, password=password)
        if res.ok:
            self.logger.info(f"Backup verify ok (fingerprint {res.fingerprint})")
        else:
            self.logger.warning(f"Backup verify failed: {'; '.join(res.errors[:5])}")
        return res

    @staticmethod
    def fingerprint(archive: Union[Archive, Mapping[str, Any]]) -> str:
        return fingerprint(archive)
