from __future__ import annotations

import hashlib
import re

import pytest

from agent_backup.core.backup.codec import export_archive
from agent_backup.core.backup.hasher import canonical_json, fingerprint
from agent_backup.core.backup.models import Archive, FileRecord, PlainSection
from agent_backup.core.config import ExportOptions
from agent_backup.core.errors import ArchiveFormatError


def _raw(exported="2026-02-08T02:00:00.000Z"):
    return {"version": "1.0", "exported": exported, "agent": {"name": "Agent1", "email": "a@example.com"}}


def test_fingerprint_generation():
    fp1 = fingerprint(_raw())
    fp2 = fingerprint(_raw())
    fp3 = fingerprint(_raw("2026-02-08T03:00:00.000Z"))
    assert fp1 == fp2
    assert fp1 != fp3
    assert re.fullmatch(r"[0-9a-f]{16}", fp1)


def test_fingerprint_matches_compact_json_digest():
    # agent in its wire form (metadata always present), no whitespace, as JSON.stringify emits it
    expected_src = '{"agent":{"name":"Agent1","email":"a@example.com","metadata":{}},"exported":"2026-02-08T02:00:00.000Z"}'
    assert fingerprint(_raw()) == hashlib.sha256(expected_src.encode("utf-8")).hexdigest()[:16]


def test_fingerprint_ignores_contents_and_encryption_flag():
    base = dict(exported="2026-02-08T02:00:00.000Z", agent={"name": "A", "metadata": {"k": 1}, "created": "2026-02-08T02:00:00.000Z"})
    a = Archive(**base, memory=PlainSection(files=[FileRecord(path="a.md", content="one", updated="x")]))
    b = Archive(**base, memory=PlainSection(files=[FileRecord(path="a.md", content="two", updated="y")]))
    assert fingerprint(a) == fingerprint(b)
    wire = a.to_dict()
    wire["encrypted"] = True
    assert fingerprint(wire) == fingerprint(a)


def test_fingerprint_model_and_wire_agree(sample_workspace):
    archive = export_archive(name="A", email="a@x", credentials_paths=["cred.key"], options=ExportOptions(workdir=str(sample_workspace)))
    assert fingerprint(archive) == fingerprint(archive.to_dict())


def test_fingerprint_is_sensitive_to_metadata_key_order():
    a = _raw()
    b = _raw()
    a["agent"]["metadata"] = {"x": 1, "y": 2}
    b["agent"]["metadata"] = {"y": 2, "x": 1}
    assert fingerprint(a) != fingerprint(b)


def test_canonical_json_keeps_unicode():
    assert canonical_json({"n": "Zoë"}) == '{"n":"Zoë"}'.encode("utf-8")


def test_fingerprint_ignores_agent_key_order_and_missing_metadata():
    a = _raw()
    b = _raw()
    b["agent"] = {"email": "a@example.com", "metadata": {}, "name": "Agent1"}
    assert fingerprint(a) == fingerprint(b)
    assert fingerprint(a) == fingerprint(Archive.model_validate(a))


def test_fingerprint_rejects_malformed_agent():
    with pytest.raises(ArchiveFormatError):
        fingerprint({"exported": "2026-02-08T02:00:00.000Z", "agent": {"email": "no-name@example.com"}})
