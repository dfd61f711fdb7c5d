from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError as PydanticValidationError

from agent_backup.core.backup.models import AgentIdentity, Archive
from agent_backup.core.errors import ArchiveFormatError

FINGERPRINT_LEN = 16


def sha256_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()


def canonical_json(obj: Any) -> bytes:
    """
    Compact JSON, key order as given, UTF-8 without ASCII escaping. Matches the
    byte output of JavaScript's JSON.stringify for the same data.
    """
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def fingerprint(archive: Union[Archive, Mapping[str, Any]]) -> str:
    """
    Short digest over the agent block and export timestamp only. A raw mapping
    is hashed through the same agent wire form as a loaded Archive, so a file
    fingerprints identically however it was read.
    """
    if isinstance(archive, Archive):
        agent, exported = archive.agent, archive.exported
    else:
        try:
            agent = AgentIdentity.model_validate(archive.get("agent"))
        except PydanticValidationError as e:
            raise ArchiveFormatError("Backup agent block is malformed.", errors=e.error_count()) from e
        exported = archive.get("exported")
    payload: Dict[str, Any] = {"agent": agent.to_dict(), "exported": exported}
    return sha256_bytes(canonical_json(payload))[:FINGERPRINT_LEN]
