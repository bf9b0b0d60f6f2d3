try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from app.clients.bitrix_rest import BitrixResponse, RemoteUnauthorizedError
from app.clients.sqlite_store import SQLiteCredentialStore
from app.core.errors import AuthenticationFailedError, NotAuthenticatedError, RemoteApiError
from app.models.credentials import CredentialRecord
from app.services.bitrix_gateway import BitrixGateway
from app.services.token_lifecycle import TokenLifecycleManager

try:
    from ._fakes import FakeOAuthClient
except ImportError:  # pragma: no cover - fallback for direct execution
    from _fakes import FakeOAuthClient  # type: ignore

DOMAIN = "example.bitrix24.com"


class ScriptedRestClient:
    """Replays queued responses; an exception instance is raised instead."""

    def __init__(self, *responses: object) -> None:
        self._responses = list(responses)
        self.tokens: list[str] = []

    async def invoke(self, *, domain, method, access_token, payload=None) -> BitrixResponse:
        self.tokens.append(access_token)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _manager(tmp_path: Path, oauth: FakeOAuthClient) -> TokenLifecycleManager:
    store = SQLiteCredentialStore(str(tmp_path / "tokens.db"))
    store.save(
        CredentialRecord.issue(
            domain=DOMAIN,
            member_id="member-1",
            access_token="stored-access",
            refresh_token="stored-refresh",
        )
    )
    return TokenLifecycleManager(store, oauth)


@pytest.mark.asyncio
async def test_call_returns_result_member(tmp_path: Path) -> None:
    rest = ScriptedRestClient(BitrixResponse(result={"ID": 1}))
    gateway = BitrixGateway(_manager(tmp_path, FakeOAuthClient()), rest)

    assert await gateway.call(DOMAIN, "app.info") == {"ID": 1}
    assert rest.tokens == ["stored-access"]


@pytest.mark.asyncio
async def test_unauthorized_call_is_retried_once_with_refreshed_token(tmp_path: Path) -> None:
    oauth = FakeOAuthClient()
    rest = ScriptedRestClient(RemoteUnauthorizedError("expired"), BitrixResponse(result=True))
    gateway = BitrixGateway(_manager(tmp_path, oauth), rest)

    response = await gateway.call_envelope(DOMAIN, "crm.contact.get", {"id": 1})

    assert response.result is True
    assert oauth.refresh_calls == ["stored-refresh"]
    assert rest.tokens == ["stored-access", "access-1"]


@pytest.mark.asyncio
async def test_second_unauthorized_response_fails_authentication(tmp_path: Path) -> None:
    oauth = FakeOAuthClient()
    rest = ScriptedRestClient(
        RemoteUnauthorizedError("expired"), RemoteUnauthorizedError("still expired")
    )
    gateway = BitrixGateway(_manager(tmp_path, oauth), rest)

    with pytest.raises(AuthenticationFailedError):
        await gateway.call(DOMAIN, "app.info")

    assert len(oauth.refresh_calls) == 1
    assert len(rest.tokens) == 2


@pytest.mark.asyncio
async def test_failed_refresh_after_rejection_fails_authentication(tmp_path: Path) -> None:
    oauth = FakeOAuthClient()
    oauth.fail_with = "invalid_grant"
    rest = ScriptedRestClient(RemoteUnauthorizedError("expired"))
    gateway = BitrixGateway(_manager(tmp_path, oauth), rest)

    with pytest.raises(AuthenticationFailedError):
        await gateway.call(DOMAIN, "app.info")
    assert rest.tokens == ["stored-access"]


@pytest.mark.asyncio
async def test_remote_errors_are_not_retried(tmp_path: Path) -> None:
    oauth = FakeOAuthClient()
    rest = ScriptedRestClient(RemoteApiError("Access denied", code="ACCESS_DENIED"))
    gateway = BitrixGateway(_manager(tmp_path, oauth), rest)

    with pytest.raises(RemoteApiError):
        await gateway.call(DOMAIN, "crm.contact.add")
    assert oauth.refresh_calls == []


@pytest.mark.asyncio
async def test_unknown_domain_is_not_authenticated(tmp_path: Path) -> None:
    rest = ScriptedRestClient()
    gateway = BitrixGateway(_manager(tmp_path, FakeOAuthClient()), rest)

    with pytest.raises(NotAuthenticatedError):
        await gateway.call("unknown.bitrix24.com", "app.info")
    assert rest.tokens == []
