from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List


def read_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def warning_messages(records: Iterable[Any]) -> List[str]:
    return [r.getMessage() for r in records if r.levelname == "WARNING"]


def assert_no_secret_leak(objs: Iterable[Dict[str, Any]], secret: str) -> None:
    blob = json.dumps(list(objs), ensure_ascii=False)
    assert secret not in blob
    assert "***REDACTED***" in blob
