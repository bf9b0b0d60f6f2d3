"""Maintenance commands for the stored Bitrix24 credentials.

Example usages::

    # Show every portal with stored credentials.
    python -m scripts.manage_tokens list

    # Drop the credentials of a portal that uninstalled the application.
    python -m scripts.manage_tokens delete example.bitrix24.com

    # Rebuild the database from the JSON mirror after losing tokens.db.
    python -m scripts.manage_tokens restore
"""

from __future__ import annotations

import argparse
import sys
import time
from datetime import datetime, timezone

from app.clients.sqlite_store import SQLiteCredentialStore
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.services.token_cipher import TokenCipherService

EXIT_OK = 0
EXIT_NOT_FOUND = 4


def _build_store() -> SQLiteCredentialStore:
    settings = get_settings()
    secret = settings.security.token_encryption_secret or settings.bitrix.client_secret
    return SQLiteCredentialStore(
        settings.storage.db_path,
        backup_path=settings.storage.backup_path,
        cipher=TokenCipherService(secret=secret),
    )


def _list(store: SQLiteCredentialStore) -> int:
    now = int(time.time())
    records = store.list_all()
    if not records:
        print("No credentials stored.")
        return EXIT_OK
    for record in records:
        expires = datetime.fromtimestamp(record.expires_at, tz=timezone.utc).isoformat()
        state = "expired" if record.is_expired(now=now) else "valid"
        print(f"{record.domain}\tmember={record.member_id}\texpires={expires}\t{state}")
    return EXIT_OK


def _delete(store: SQLiteCredentialStore, domain: str) -> int:
    if not store.delete(domain):
        print(f"No credentials stored for {domain}.", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(f"Deleted credentials for {domain}.")
    return EXIT_OK


def _restore(store: SQLiteCredentialStore) -> int:
    restored = store.restore_from_backup()
    print(f"Restored {restored} credential record(s).")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage stored Bitrix24 credentials.")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", help="List stored portals.")
    delete_parser = subparsers.add_parser("delete", help="Delete a portal's credentials.")
    delete_parser.add_argument("domain", help="Portal host, e.g. example.bitrix24.com.")
    subparsers.add_parser("restore", help="Restore credentials from the JSON backup.")
    return parser


def main(
    argv: list[str] | None = None, *, store: SQLiteCredentialStore | None = None
) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    store = store or _build_store()

    if args.command == "list":
        return _list(store)
    if args.command == "delete":
        return _delete(store, args.domain)
    return _restore(store)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
