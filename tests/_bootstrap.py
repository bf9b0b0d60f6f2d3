"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

_STATE_DIR = Path(tempfile.mkdtemp(prefix="bitrix-bridge-tests-"))

_DEFAULT_ENV_VARS: dict[str, str] = {
    "BITRIX24_CLIENT_ID": "local.test-client",
    "BITRIX24_CLIENT_SECRET": "test-client-secret",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "DB_PATH": str(_STATE_DIR / "tokens.db"),
    "TOKEN_BACKUP_PATH": str(_STATE_DIR / "tokens.json"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
