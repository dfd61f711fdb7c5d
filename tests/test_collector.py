from __future__ import annotations

import logging
import os

from agent_backup.core.backup.collector import collect_files, collect_section
from tests.helpers.log_assertions import warning_messages
from tests.helpers.workspace import make_files


def test_missing_file_is_skipped_with_warning(tmp_path, caplog):
    make_files(tmp_path, {"present.key": "k1"})
    with caplog.at_level(logging.WARNING, logger="agent_backup"):
        records, warnings = collect_files(str(tmp_path), ["present.key", "missing.key"])
    assert [r.path for r in records] == ["present.key"]
    assert len(warnings) == 1
    assert "missing.key" in warnings[0]
    assert any("missing.key" in m for m in warning_messages(caplog.records))


def test_order_and_relative_path_preserved(tmp_path):
    make_files(tmp_path, {"b.md": "B", "dir/a.md": "A", "c.md": "C"})
    records, warnings = collect_files(str(tmp_path), ["c.md", "dir/a.md", "b.md"])
    assert warnings == []
    assert [r.path for r in records] == ["c.md", "dir/a.md", "b.md"]
    assert [r.content for r in records] == ["C", "A", "B"]
    for r in records:
        assert not os.path.isabs(r.path)
        assert r.updated.endswith("Z")


def test_line_endings_are_kept(tmp_path):
    make_files(tmp_path, {"crlf.md": "one\r\ntwo\r\n"})
    records, _ = collect_files(str(tmp_path), ["crlf.md"])
    assert records[0].content == "one\r\ntwo\r\n"


def test_non_utf8_and_directories_are_skipped(tmp_path):
    make_files(tmp_path, {"bin.dat": b"\xff\xfe\x00\x81", "ok.txt": "fine"})
    (tmp_path / "adir").mkdir()
    records, warnings = collect_files(str(tmp_path), ["bin.dat", "adir", "ok.txt"])
    assert [r.path for r in records] == ["ok.txt"]
    assert len(warnings) == 2


def test_paths_outside_workdir_are_skipped(tmp_path):
    inner = tmp_path / "work"
    make_files(tmp_path, {"outside.key": "nope", "work/inside.key": "yes"})
    records, warnings = collect_files(str(inner), ["../outside.key", str(tmp_path / "outside.key"), "inside.key", ""])
    assert [r.path for r in records] == ["inside.key"]
    assert len(warnings) == 3


def test_collect_section_wraps_records(tmp_path):
    make_files(tmp_path, {"x.md": "x"})
    section, warnings = collect_section(str(tmp_path), ["x.md"])
    assert warnings == []
    assert len(section.files) == 1


def test_in_root_symlink_to_outside_file_is_collected(tmp_path):
    inner = tmp_path / "work"
    make_files(tmp_path, {"secrets/real.key": "linked secret", "work/plain.md": "p"})
    os.symlink(str(tmp_path / "secrets" / "real.key"), str(inner / "agent.key"))
    records, warnings = collect_files(str(inner), ["agent.key", "plain.md", "sub/../../secrets/real.key"])
    assert [r.path for r in records] == ["agent.key", "plain.md"]
    assert records[0].content == "linked secret"
    assert len(warnings) == 1
    assert "escapes" in warnings[0]
