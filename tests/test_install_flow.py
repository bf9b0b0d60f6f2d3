try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from app.clients.sqlite_store import SQLiteCredentialStore
from app.core.errors import ValidationFailedError
from app.schemas.install import (
    AuthCodeInstall,
    DirectTokenInstall,
    HybridFormInstall,
    classify_install_payload,
    parse_install_payload,
)
from app.services.install import InstallService
from app.services.token_lifecycle import TokenLifecycleManager

try:
    from ._fakes import FakeBitrixPortal, FakeOAuthClient
except ImportError:  # pragma: no cover - fallback for direct execution
    from _fakes import FakeBitrixPortal, FakeOAuthClient  # type: ignore

DOMAIN = "example.bitrix24.com"


def test_onappinstall_event_is_a_direct_token_install() -> None:
    body = {
        "event": "ONAPPINSTALL",
        "auth": {
            "domain": DOMAIN,
            "access_token": "access",
            "refresh_token": "refresh",
            "member_id": "member-1",
            "expires_in": "1800",
        },
    }

    payload = parse_install_payload(body, {})

    assert isinstance(payload, DirectTokenInstall)
    assert payload.member_id == "member-1"
    assert payload.expires_in == 1800


def test_bracketed_form_keys_are_collapsed() -> None:
    body = {
        "event": "ONAPPINSTALL",
        "auth[domain]": DOMAIN,
        "auth[access_token]": "access",
        "auth[member_id]": "member-2",
    }

    payload = parse_install_payload(body, {})

    assert isinstance(payload, DirectTokenInstall)
    assert payload.domain == DOMAIN
    assert payload.refresh_token == ""


def test_hybrid_install_reads_body_then_query() -> None:
    payload = parse_install_payload(
        {"AUTH_ID": "access", "REFRESH_ID": "refresh", "AUTH_EXPIRES": ""},
        {"DOMAIN": DOMAIN, "member_id": "member-3", "PLACEMENT": "DEFAULT"},
    )

    assert isinstance(payload, HybridFormInstall)
    assert payload.domain == DOMAIN
    assert payload.access_token == "access"
    assert payload.expires_in == 3600
    assert payload.placement == "DEFAULT"


def test_authorization_code_install_defaults_member_id() -> None:
    payload = parse_install_payload({}, {"code": "abc", "domain": DOMAIN})

    assert isinstance(payload, AuthCodeInstall)
    assert payload.member_id == "unknown"


@pytest.mark.parametrize(
    ("body", "query", "expected"),
    [
        ({"event": "ONAPPINSTALL", "auth": {}}, {}, "direct_token"),
        ({"event": "ONAPPUNINSTALL", "auth": {}}, {}, None),
        ({"AUTH_ID": "a", "DOMAIN": DOMAIN, "code": "c"}, {}, "hybrid_form"),
        ({"AUTH_ID": "a"}, {}, None),
        ({}, {"code": "c"}, "auth_code"),
        ({}, {}, None),
    ],
)
def test_classify_install_payload(body: dict, query: dict, expected: str | None) -> None:
    assert classify_install_payload(body, query) == expected


def test_unrecognized_payload_is_rejected() -> None:
    with pytest.raises(ValidationFailedError, match="Missing required parameters"):
        parse_install_payload({"foo": "bar"}, {})


def test_code_without_domain_is_rejected() -> None:
    with pytest.raises(ValidationFailedError):
        parse_install_payload({}, {"code": "abc"})


@pytest.mark.asyncio
async def test_install_stores_tokens_even_when_probe_fails(tmp_path: Path) -> None:
    store = SQLiteCredentialStore(str(tmp_path / "tokens.db"))
    portal = FakeBitrixPortal()
    portal.failing_methods.add("crm.contact.list")
    service = InstallService(TokenLifecycleManager(store, FakeOAuthClient()), portal)

    record = await service.install(
        DirectTokenInstall(domain=DOMAIN, access_token="access", member_id="member-1")
    )

    assert record.member_id == "member-1"
    assert store.get(DOMAIN) == record
    assert portal.methods == ["crm.contact.list"]


@pytest.mark.asyncio
async def test_install_with_code_exchanges_and_probes(tmp_path: Path) -> None:
    store = SQLiteCredentialStore(str(tmp_path / "tokens.db"))
    oauth = FakeOAuthClient()
    portal = FakeBitrixPortal()
    service = InstallService(TokenLifecycleManager(store, oauth), portal)

    record = await service.install(AuthCodeInstall(code="abc", domain=DOMAIN))

    assert oauth.code_calls == ["abc"]
    assert record.access_token == "access-for-abc"
    assert portal.methods == ["crm.contact.list"]


@pytest.mark.parametrize(
    ("body", "query"),
    [
        (
            {"event": "ONAPPINSTALL", "auth": {"domain": "bad domain/x?", "access_token": "a"}},
            {},
        ),
        ({"AUTH_ID": "a"}, {"DOMAIN": "https://example.bitrix24.com"}),
        ({}, {"code": "abc", "domain": "example.bitrix24.com/path"}),
    ],
)
def test_malformed_domain_is_rejected_for_every_shape(body: dict, query: dict) -> None:
    with pytest.raises(ValidationFailedError):
        parse_install_payload(body, query)


def test_domain_with_port_is_accepted() -> None:
    payload = parse_install_payload({}, {"code": "abc", "domain": "crm.local:8443"})

    assert payload.domain == "crm.local:8443"
