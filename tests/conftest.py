from __future__ import annotations

import sys
from collections import Counter
from pathlib import Path
from typing import List

import pytest

BASE_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = (BASE_DIR / "src").resolve()

if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))
if str(SRC_DIR) not in sys.path:
    sys.path.append(str(SRC_DIR))

CHAINSMITH_ENV_VARS = ("CHAINSMITH_DEBUG", "CHAINSMITH_INDENT")


@pytest.fixture(autouse=True)
def clean_chainsmith_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Printer output depends on CHAINSMITH_INDENT; start every test from defaults."""
    for name in CHAINSMITH_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def pytest_collection_modifyitems(
    session: pytest.Session,
    config: pytest.Config,
    items: List[pytest.Item],
) -> None:
    """Refuse to run when two parametrized cases share an id."""
    del session
    del config

    counts = Counter(item.nodeid for item in items)
    duplicates = sorted(nodeid for nodeid, count in counts.items() if count > 1)
    if not duplicates:
        return

    lines = "\n".join(f"- {nodeid}" for nodeid in duplicates)
    raise pytest.UsageError(
        "Duplicate pytest nodeids detected during collection:\n" f"{lines}"
    )
