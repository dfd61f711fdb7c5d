from __future__ import annotations

import logging

import pytest

from agent_backup.core.backup.models import KdfParams
from agent_backup.core.config import ExportOptions
from agent_backup.core.logger import LOGGER_NAME
from tests.helpers.workspace import make_files


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """CLI runs attach handlers and stop propagation; undo that between tests."""
    yield
    lg = logging.getLogger(LOGGER_NAME)
    for h in list(lg.handlers):
        lg.removeHandler(h)
        h.close()
    lg.propagate = True
    lg.setLevel(logging.NOTSET)


@pytest.fixture
def fast_kdf():
    # keep scrypt cheap in tests; production default is n=2**15
    return KdfParams(n=2**10, r=8, p=1)


@pytest.fixture
def export_dir(tmp_path):
    d = tmp_path / "export"
    d.mkdir()
    return d


@pytest.fixture
def import_dir(tmp_path):
    d = tmp_path / "import"
    d.mkdir()
    return d


@pytest.fixture
def sample_workspace(export_dir):
    make_files(
        export_dir,
        {
            "cred.key": "secret123",
            "memory.md": "# Memory\nTest content",
        },
    )
    return export_dir


@pytest.fixture
def encrypt_options(sample_workspace, fast_kdf):
    return ExportOptions(workdir=str(sample_workspace), encrypt=True, password="testpass123", kdf=fast_kdf)
