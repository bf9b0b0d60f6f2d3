"""Utility for verifying that the bridge's environment configuration is intact.

The tool performs three checks:

1. It instantiates ``AppSettings`` from the provided ``.env`` file, surfacing
   missing or malformed entries (for example ``BITRIX24_CLIENT_SECRET``)
   before installs start failing.
2. It sanity-checks the Bitrix24 specific values: the token URL template must
   contain ``{domain}`` and the credential database directory must be
   writable.
3. It can record and verify a checksum for the ``.env`` file so unexpected
   edits are detected.

Example usages::

    # Validate the Bitrix24 settings and record the expected checksum.
    python -m scripts.check_env record --env-file /srv/bitrix-bridge/.env \
        --hash-file /srv/bitrix-bridge/.env.sha256

    # Run later (e.g. before restarting the service) to alert on drift.
    python -m scripts.check_env verify --env-file /srv/bitrix-bridge/.env \
        --hash-file /srv/bitrix-bridge/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import os
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    """Return the SHA256 checksum for the target environment file."""
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings with ``env_file`` applied on top of the process env."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _bitrix_problems(settings: AppSettings) -> list[str]:
    """Return human readable problems with the Bitrix24 specific settings."""
    problems: list[str] = []
    if "{domain}" not in settings.bitrix.token_url_template:
        problems.append("BITRIX24_TOKEN_URL must contain the '{domain}' placeholder.")
    if settings.bitrix.http_timeout_seconds <= 0:
        problems.append("BITRIX24_HTTP_TIMEOUT must be positive.")

    db_dir = Path(settings.storage.db_path).resolve().parent
    existing = db_dir
    while not existing.exists() and existing != existing.parent:
        existing = existing.parent
    if not os.access(existing, os.W_OK):
        problems.append(f"Credential database directory {db_dir} is not writable.")
    return problems


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    """Persist the current checksum to ``hash_file``."""
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Investigate recent changes before restarting the bridge.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _report(settings: AppSettings) -> int:
    default_domain = settings.bitrix.default_domain or "<none>"
    print(
        f"Settings OK (environment={settings.environment}, "
        f"default domain={default_domain}, db={settings.storage.db_path})."
    )
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate Bitrix24 bridge settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_file(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    for name, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_env_file(subparser)
        subparser.add_argument(
            "--hash-file",
            required=True,
            type=Path,
            help="Location of the checksum baseline.",
        )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings without touching any checksum files.",
    )
    add_env_file(check_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    problems = _bitrix_problems(settings)
    if problems:
        print("\n".join(problems), file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: _report(settings),
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
