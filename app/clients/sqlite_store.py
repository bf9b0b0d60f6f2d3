"""SQLite-backed credential store with a JSON mirror of every write."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from app.models.credentials import CredentialRecord

if TYPE_CHECKING:
    from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

_COLUMNS = (
    "domain",
    "member_id",
    "access_token",
    "refresh_token",
    "expires_in",
    "token_type",
    "scope",
    "expires_at",
    "created_at",
)


class SQLiteCredentialStore:
    """One credential record per portal domain, keyed by ``domain``."""

    def __init__(
        self,
        db_path: str,
        *,
        backup_path: str | None = None,
        cipher: TokenCipherService | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._backup_path = Path(backup_path) if backup_path else None
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credentials (
                    domain TEXT PRIMARY KEY,
                    member_id TEXT NOT NULL,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    expires_in INTEGER NOT NULL,
                    token_type TEXT NOT NULL,
                    scope TEXT NOT NULL,
                    expires_at INTEGER NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
                )
                """
            )

    def save(self, record: CredentialRecord) -> None:
        """Insert or fully replace the record for ``record.domain``."""
        if not record.domain or not record.member_id or not record.access_token:
            raise ValueError(
                "Credential record must include 'domain', 'member_id' and 'access_token'"
            )
        row = record.model_dump()
        if self._cipher is not None:
            row = self._cipher.seal(row)
        self._upsert_row(row)
        self.backup_to_json()
        logger.info("Credentials saved for domain %s", record.domain)

    def get(self, domain: str) -> Optional[CredentialRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM credentials WHERE domain = ?",
                (domain,),
            ).fetchone()
        if not row:
            return None
        return self._to_record(dict(row))

    def delete(self, domain: str) -> bool:
        """Remove the record for ``domain``; return whether one existed."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM credentials WHERE domain = ?", (domain,))
            removed = cursor.rowcount > 0
        self.backup_to_json()
        if removed:
            logger.info("Credentials deleted for domain %s", domain)
        return removed

    def list_all(self) -> list[CredentialRecord]:
        return [self._to_record(row) for row in self._raw_rows()]

    def backup_to_json(self) -> None:
        """Mirror every stored row (as stored) to the backup file."""
        if self._backup_path is None:
            return
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tokens": self._raw_rows(),
        }
        try:
            self._backup_path.parent.mkdir(parents=True, exist_ok=True)
            self._backup_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            logger.exception("Credential backup to %s failed", self._backup_path)
            return
        logger.debug("Credential backup written to %s", self._backup_path)

    def restore_from_backup(self) -> int:
        """Load every row from the backup file; return the number restored."""
        if self._backup_path is None or not self._backup_path.exists():
            logger.warning("Backup file not found, skipping restore")
            return 0
        payload = json.loads(self._backup_path.read_text(encoding="utf-8"))
        restored = 0
        for row in payload.get("tokens", []):
            missing = [column for column in _COLUMNS if column not in row]
            if missing:
                logger.warning(
                    "Skipping backup entry for %s; missing %s",
                    row.get("domain", "<unknown>"),
                    ", ".join(missing),
                )
                continue
            self._upsert_row(row)
            restored += 1
        logger.info("Restored %d credential record(s) from %s", restored, self._backup_path)
        return restored

    def _upsert_row(self, row: Dict[str, Any]) -> None:
        values = tuple(row[column] for column in _COLUMNS)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        assignments = ",\n                    ".join(
            f"{column} = excluded.{column}" for column in _COLUMNS[1:]
        )
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO credentials ({", ".join(_COLUMNS)}, updated_at)
                VALUES ({placeholders}, strftime('%s', 'now'))
                ON CONFLICT(domain) DO UPDATE SET
                    {assignments},
                    updated_at = excluded.updated_at
                """,
                values,
            )

    def _raw_rows(self) -> list[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM credentials ORDER BY domain"
            ).fetchall()
        return [dict(row) for row in rows]

    def _to_record(self, row: Dict[str, Any]) -> CredentialRecord:
        data = {column: row[column] for column in _COLUMNS}
        if self._cipher is not None:
            data = self._cipher.unseal(data)
        return CredentialRecord(**data)


__all__ = ["SQLiteCredentialStore"]
