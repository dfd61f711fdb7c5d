from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator, model_validator

from agent_backup.core import crypto

BACKUP_VERSION = "1.0"

# Upper bounds accepted when reading KDF parameters out of an archive.
MAX_SCRYPT_N = 2**20
MAX_SCRYPT_R = 64
MAX_SCRYPT_P = 16
MAX_SCRYPT_MEM = 512 * 1024 * 1024  # ~128 * r * n bytes


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FileRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(min_length=1)
    content: str
    updated: str


class KdfParams(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Literal["scrypt"] = "scrypt"
    n: int = crypto.SCRYPT_N
    r: int = Field(default=crypto.SCRYPT_R, ge=1, le=MAX_SCRYPT_R)
    p: int = Field(default=crypto.SCRYPT_P, ge=1, le=MAX_SCRYPT_P)

    @field_validator("n")
    @classmethod
    def _n_power_of_two(cls, v: int) -> int:
        if v < 2 or v > MAX_SCRYPT_N or (v & (v - 1)) != 0:
            raise ValueError(f"scrypt n must be a power of two in [2 .. {MAX_SCRYPT_N}]")
        return v

    @model_validator(mode="after")
    def _memory_bound(self) -> "KdfParams":
        if 128 * self.r * self.n > MAX_SCRYPT_MEM:
            raise ValueError("scrypt parameters exceed the memory limit")
        return self


class PlainSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    files: List[FileRecord] = Field(default_factory=list)


class EncryptedSection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    encrypted: Literal[True] = True
    algorithm: str = crypto.ALGORITHM
    # checked against KdfParams bounds only when the section is opened;
    # absent: legacy sha256(password + salt_hex)
    kdf: Optional[Dict[str, Any]] = None
    iv: str
    salt: str
    auth_tag: str = Field(alias="authTag")
    data: str


def _section_kind(v: Any) -> str:
    if isinstance(v, dict):
        return "encrypted" if v.get("encrypted") else "plain"
    return "encrypted" if getattr(v, "encrypted", False) else "plain"


FileSection = Annotated[
    Union[
        Annotated[PlainSection, Tag("plain")],
        Annotated[EncryptedSection, Tag("encrypted")],
    ],
    Discriminator(_section_kind),
]


class AgentIdentity(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    email: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        if self.email is not None:
            out["email"] = self.email
        out["metadata"] = dict(self.metadata)
        if self.created is not None:
            out["created"] = self.created
        return out


def section_to_dict(section: Union[PlainSection, EncryptedSection]) -> Dict[str, Any]:
    if isinstance(section, EncryptedSection):
        out = section.model_dump(mode="json", by_alias=True)
        if out.get("kdf") is None:
            out.pop("kdf", None)
        return out
    return section.model_dump(mode="json")


class Archive(BaseModel):
    """
    One complete backup. Built once by export, read-only afterwards.

    `version` is a plain string so that archives from other schema versions can
    still be represented and rejected explicitly on import.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: str = BACKUP_VERSION
    exported: str
    agent: AgentIdentity
    encrypted: Optional[bool] = None
    credentials: FileSection = Field(default_factory=PlainSection)
    memory: FileSection = Field(default_factory=PlainSection)
    platforms: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _encrypted_flag_matches_sections(self) -> "Archive":
        sealed = [isinstance(s, EncryptedSection) for s in (self.credentials, self.memory)]
        if self.encrypted and not all(sealed):
            raise ValueError("archive is marked encrypted but a section is plain")
        if not self.encrypted and any(sealed):
            raise ValueError("archive has an encrypted section but is not marked encrypted")
        return self

    @property
    def is_encrypted(self) -> bool:
        return bool(self.encrypted)

    def file_count(self) -> int:
        n = 0
        for s in (self.credentials, self.memory):
            if isinstance(s, PlainSection):
                n += len(s.files)
        return n

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "exported": self.exported,
            "agent": self.agent.to_dict(),
        }
        if self.encrypted:
            out["encrypted"] = True
        out["credentials"] = section_to_dict(self.credentials)
        out["memory"] = section_to_dict(self.memory)
        out["platforms"] = dict(self.platforms)
        return out


class RestoredCounts(BaseModel):
    model_config = ConfigDict(extra="forbid")

    credentials: int = 0
    memory: int = 0


class ImportResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    agent: AgentIdentity
    restored: RestoredCounts = Field(default_factory=RestoredCounts)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
