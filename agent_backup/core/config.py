from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from agent_backup.core.backup.models import KdfParams
from agent_backup.core.errors import ConfigurationError
from agent_backup.core.io import read_json_file

DEFAULT_SETTINGS_FILE = "agent_backup.json"
PASSWORD_ENV = "AGENT_BACKUP_PASSWORD"


@dataclass(frozen=True)
class ExportOptions:
    workdir: str = "."
    encrypt: bool = False
    password: Optional[str] = None
    kdf: KdfParams = field(default_factory=KdfParams)


@dataclass(frozen=True)
class ImportOptions:
    target_dir: str = "."
    overwrite: bool = False
    password: Optional[str] = None


class BackupSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    default_output: str = "backup.json"
    password_env: str = PASSWORD_ENV
    kdf: KdfParams = Field(default_factory=KdfParams)
    log_dir: Optional[str] = None


def load_settings(path: Optional[str] = None) -> BackupSettings:
    """
    Load settings from a JSON file. The default file is optional; an explicitly
    named file must exist. Corrupt or invalid files are fatal.
    """
    explicit = path is not None
    path = path or DEFAULT_SETTINGS_FILE
    rr = read_json_file(path)
    if not rr.ok:
        if rr.error == "missing" and not explicit:
            return BackupSettings()
        raise ConfigurationError(f"Unable to read settings file {path!r}: {rr.error}", path=path)
    try:
        return BackupSettings.model_validate(rr.data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid settings file {path!r}: {e.error_count()} error(s)", path=path) from e


def resolve_password(explicit: Optional[str], *, env_var: str = PASSWORD_ENV, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    if explicit:
        return explicit
    env = os.environ if environ is None else environ
    return env.get(env_var) or None
