"""Tests for the environment drift detection script."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from scripts import check_env

REQUIRED_ENV_KEYS = [
    "BITRIX24_CLIENT_ID",
    "BITRIX24_CLIENT_SECRET",
    "BITRIX24_DOMAIN",
    "BITRIX24_TOKEN_URL",
    "BITRIX24_HTTP_TIMEOUT",
    "DB_PATH",
]


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_required_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in REQUIRED_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.mark.parametrize("command", ["record", "verify", "check"])
def test_main_requires_existing_env_file(tmp_path: Path, command: str) -> None:
    env_file = tmp_path / ".missing-env"
    hash_file = tmp_path / ".env.sha256"

    argv = [command, "--env-file", str(env_file)]
    if command != "check":
        argv.extend(["--hash-file", str(hash_file)])

    exit_code = check_env.main(argv)
    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_record_and_verify_detects_mismatched_checksum(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_required_env(monkeypatch)
    _write_env(
        env_file,
        BITRIX24_CLIENT_ID="local.abc",
        BITRIX24_CLIENT_SECRET="secret",
        BITRIX24_DOMAIN="example.bitrix24.com",
        DB_PATH=str(tmp_path / "data" / "tokens.db"),
    )

    exit_code = check_env.main(
        [
            "record",
            "--env-file",
            str(env_file),
            "--hash-file",
            str(hash_file),
        ]
    )
    assert exit_code == check_env.EXIT_OK
    baseline = hash_file.read_text(encoding="utf-8").strip()
    assert baseline

    _clear_required_env(monkeypatch)
    exit_code = check_env.main(
        [
            "verify",
            "--env-file",
            str(env_file),
            "--hash-file",
            str(hash_file),
        ]
    )
    assert exit_code == check_env.EXIT_OK

    _write_env(
        env_file,
        BITRIX24_CLIENT_ID="local.abc",
        BITRIX24_CLIENT_SECRET="different",
        BITRIX24_DOMAIN="example.bitrix24.com",
        DB_PATH=str(tmp_path / "data" / "tokens.db"),
    )

    _clear_required_env(monkeypatch)
    exit_code = check_env.main(
        [
            "verify",
            "--env-file",
            str(env_file),
            "--hash-file",
            str(hash_file),
        ]
    )
    assert exit_code == check_env.EXIT_CHECKSUM_ERROR


def test_validation_failure_for_missing_required_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    hash_file = tmp_path / ".env.sha256"

    _clear_required_env(monkeypatch)
    _write_env(env_file, BITRIX24_CLIENT_ID="local.abc")

    exit_code = check_env.main(
        [
            "record",
            "--env-file",
            str(env_file),
            "--hash-file",
            str(hash_file),
        ]
    )
    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert not hash_file.exists()


def test_token_url_without_domain_placeholder_is_rejected(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"

    _clear_required_env(monkeypatch)
    _write_env(
        env_file,
        BITRIX24_CLIENT_ID="local.abc",
        BITRIX24_CLIENT_SECRET="secret",
        BITRIX24_TOKEN_URL="https://oauth.bitrix.info/oauth/token/",
        DB_PATH=str(tmp_path / "tokens.db"),
    )

    exit_code = check_env.main(["check", "--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR
    assert "{domain}" in capsys.readouterr().err
