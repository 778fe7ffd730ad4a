"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Ensure the application package is importable when running tests without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


SETTINGS_ENV_VARS = (
    "COMBINATION_COUNT",
    "PROVIDER_COMBINATION_COUNT",
    "COMBINATION_MARGIN_MINUTES",
    "REPLACEMENT_MARGIN_MINUTES",
    "MAX_COMBINATION_SIZE",
    "COMBINATION_SIZE_CAP",
    "DEFAULT_RUNTIME_MINUTES",
    "SESSION_TTL_SECONDS",
    "PROVIDER_KEYS",
)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment overrides out of Settings built in tests."""

    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
