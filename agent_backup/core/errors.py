from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from agent_backup.core.redaction import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class BackupError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = False
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.user_message)

    def __str__(self) -> str:
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Fatal for the whole operation ----
class ValidationError(BackupError):
    def __init__(self, user_message: str = "Invalid request.", **ctx: Any):
        super().__init__("validation_error", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


class ConfigurationError(BackupError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("configuration_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class VersionError(BackupError):
    def __init__(self, user_message: str = "Unsupported backup version.", **ctx: Any):
        super().__init__("version_error", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


class DecryptionError(BackupError):
    def __init__(self, user_message: str = "Unable to decrypt backup. Check your password.", **ctx: Any):
        super().__init__("decryption_error", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


class ArchiveFormatError(BackupError):
    def __init__(self, user_message: str = "Backup file is malformed.", **ctx: Any):
        super().__init__("archive_format_error", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


# ---- Per-file (recovered by the restorer) ----
class PathEscapeError(BackupError):
    def __init__(self, user_message: str = "Path escapes the target directory.", **ctx: Any):
        super().__init__("path_escape", user_message, severity=Severity.WARN, recoverable=True, context=ctx)
