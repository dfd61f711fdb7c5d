from __future__ import annotations

import json

import pytest

from agent_backup.core import crypto
from agent_backup.core.backup.codec import open_section, seal_section
from agent_backup.core.backup.models import EncryptedSection, FileRecord, KdfParams, PlainSection
from agent_backup.core.errors import DecryptionError


def _section():
    return PlainSection(files=[FileRecord(path="a.key", content="s3cr3t", updated="2026-02-08T02:00:00.000Z")])


def test_aesgcm_round_trip():
    key = crypto.scrypt_key("pw", crypto.random_salt(), n=2**10)
    iv = crypto.random_iv()
    ct, tag = crypto.aesgcm_encrypt(key, iv, b"hello agent")
    assert len(tag) == crypto.TAG_SIZE
    assert crypto.aesgcm_decrypt(key, iv, ct, tag) == b"hello agent"


def test_scrypt_is_salted():
    a = crypto.scrypt_key("pw", b"a" * 32, n=2**10)
    b = crypto.scrypt_key("pw", b"b" * 32, n=2**10)
    assert len(a) == crypto.KEY_SIZE
    assert a != b


def test_seal_open_round_trip(fast_kdf):
    sealed = seal_section(_section(), "pw", kdf=fast_kdf)
    assert sealed.kdf == fast_kdf.model_dump()
    assert open_section(sealed, "pw") == _section()


def test_open_with_wrong_password(fast_kdf):
    sealed = seal_section(_section(), "pw", kdf=fast_kdf)
    with pytest.raises(DecryptionError):
        open_section(sealed, "nope")


def test_unsupported_algorithm(fast_kdf):
    sealed = seal_section(_section(), "pw", kdf=fast_kdf)
    other = sealed.model_copy(update={"algorithm": "aes-128-cbc"})
    with pytest.raises(DecryptionError):
        open_section(other, "pw")


def test_truncated_tag(fast_kdf):
    sealed = seal_section(_section(), "pw", kdf=fast_kdf)
    with pytest.raises(DecryptionError):
        open_section(sealed.model_copy(update={"auth_tag": sealed.auth_tag[:8]}), "pw")


def test_legacy_sha256_sections_still_open():
    # layout written by archives that predate the kdf block
    salt = crypto.random_salt()
    iv = crypto.random_iv()
    key = crypto.legacy_sha256_key("legacy-pass", salt)
    payload = json.dumps({"files": [{"path": "a.key", "content": "s3cr3t", "updated": "2026-02-08T02:00:00.000Z"}]})
    ct, tag = crypto.aesgcm_encrypt(key, iv, payload.encode("utf-8"))
    section = EncryptedSection.model_validate(
        {"encrypted": True, "algorithm": "aes-256-gcm", "iv": iv.hex(), "salt": salt.hex(), "authTag": tag.hex(), "data": ct.hex()}
    )
    assert section.kdf is None
    assert open_section(section, "legacy-pass") == _section()
    with pytest.raises(DecryptionError):
        open_section(section, "other")


@pytest.mark.parametrize(
    "params",
    [
        {"n": 1000},
        {"n": 2**21},
        {"r": 0},
        {"p": 99},
        {"n": 2**20, "r": 64},
    ],
)
def test_kdf_params_are_bounded(params):
    with pytest.raises(ValueError):
        KdfParams(**params)
