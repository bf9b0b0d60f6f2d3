try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
import sqlite3
from pathlib import Path

import pytest

from app.clients.sqlite_store import SQLiteCredentialStore
from app.models.credentials import CredentialRecord
from app.services.token_cipher import TokenCipherService

DOMAIN = "example.bitrix24.com"


def _record(domain: str = DOMAIN, access_token: str = "access-1") -> CredentialRecord:
    return CredentialRecord.issue(
        domain=domain,
        member_id="member-1",
        access_token=access_token,
        refresh_token="refresh-1",
        expires_in=3600,
        now=1_700_000_000,
    )


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="store-secret")


@pytest.fixture
def store(tmp_path: Path, cipher: TokenCipherService) -> SQLiteCredentialStore:
    return SQLiteCredentialStore(
        str(tmp_path / "db" / "tokens.db"),
        backup_path=str(tmp_path / "tokens.json"),
        cipher=cipher,
    )


def test_issue_derives_expiry_from_creation_time() -> None:
    record = _record()

    assert record.created_at == 1_700_000_000
    assert record.expires_at == 1_700_003_600
    assert record.expires_within(300, now=1_700_003_300)
    assert not record.expires_within(300, now=1_700_003_299)
    assert not record.is_expired(now=1_700_003_600)
    assert record.is_expired(now=1_700_003_601)


def test_save_then_get_roundtrip(store: SQLiteCredentialStore) -> None:
    record = _record()
    store.save(record)

    assert store.get(DOMAIN) == record
    assert store.get("other.bitrix24.com") is None


def test_save_replaces_existing_record(store: SQLiteCredentialStore) -> None:
    store.save(_record(access_token="old"))
    store.save(_record(access_token="new"))

    records = store.list_all()
    assert len(records) == 1
    assert records[0].access_token == "new"


def test_tokens_are_encrypted_at_rest(tmp_path: Path, store: SQLiteCredentialStore) -> None:
    store.save(_record(access_token="plain-access"))

    with sqlite3.connect(tmp_path / "db" / "tokens.db") as conn:
        access, refresh = conn.execute(
            "SELECT access_token, refresh_token FROM credentials WHERE domain = ?",
            (DOMAIN,),
        ).fetchone()

    assert access != "plain-access"
    assert refresh != "refresh-1"


def test_save_rejects_incomplete_record(store: SQLiteCredentialStore) -> None:
    with pytest.raises(ValueError):
        store.save(_record(access_token=""))
    assert store.list_all() == []


def test_delete_reports_whether_a_record_existed(store: SQLiteCredentialStore) -> None:
    store.save(_record())

    assert store.delete(DOMAIN) is True
    assert store.delete(DOMAIN) is False
    assert store.get(DOMAIN) is None


def test_every_write_refreshes_the_json_mirror(
    tmp_path: Path, store: SQLiteCredentialStore
) -> None:
    store.save(_record())
    store.save(_record(domain="second.bitrix24.com"))

    backup = json.loads((tmp_path / "tokens.json").read_text(encoding="utf-8"))
    assert backup["timestamp"]
    assert [row["domain"] for row in backup["tokens"]] == [
        DOMAIN,
        "second.bitrix24.com",
    ]
    assert backup["tokens"][0]["access_token"] != "access-1"

    store.delete(DOMAIN)
    backup = json.loads((tmp_path / "tokens.json").read_text(encoding="utf-8"))
    assert [row["domain"] for row in backup["tokens"]] == ["second.bitrix24.com"]


def test_restore_from_backup_into_fresh_database(
    tmp_path: Path, store: SQLiteCredentialStore, cipher: TokenCipherService
) -> None:
    original = _record()
    store.save(original)

    fresh = SQLiteCredentialStore(
        str(tmp_path / "replacement.db"),
        backup_path=str(tmp_path / "tokens.json"),
        cipher=cipher,
    )
    assert fresh.list_all() == []

    assert fresh.restore_from_backup() == 1
    assert fresh.get(DOMAIN) == original


def test_restore_skips_incomplete_entries(
    tmp_path: Path, cipher: TokenCipherService
) -> None:
    backup_path = tmp_path / "tokens.json"
    backup_path.write_text(
        json.dumps({"timestamp": "now", "tokens": [{"domain": DOMAIN}]}),
        encoding="utf-8",
    )
    store = SQLiteCredentialStore(
        str(tmp_path / "tokens.db"), backup_path=str(backup_path), cipher=cipher
    )

    assert store.restore_from_backup() == 0
    assert store.list_all() == []


def test_restore_without_backup_file_is_a_noop(tmp_path: Path) -> None:
    store = SQLiteCredentialStore(
        str(tmp_path / "tokens.db"), backup_path=str(tmp_path / "missing.json")
    )

    assert store.restore_from_backup() == 0
