"""
FastAPI routes for portal installation, credential management and the
generic REST passthrough.
"""

from __future__ import annotations

import asyncio
import logging
import time
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Path, Request

from app.api.envelope import epoch_to_iso, success, utc_timestamp
from app.core.errors import NotAuthenticatedError, NotFoundError, ValidationFailedError
from app.dependencies import get_bitrix_gateway, get_install_service, get_token_manager
from app.schemas import AuthCodeInstall, InstallResponse, parse_install_payload
from app.schemas.install import DOMAIN_PATTERN
from app.services import BitrixGateway, InstallService, TokenLifecycleManager

router = APIRouter()
logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()

DomainPath = Annotated[
    str,
    Path(
        ...,
        pattern=DOMAIN_PATTERN,
        description="Bitrix24 portal host, e.g. example.bitrix24.com.",
    ),
]


async def _read_body(request: Request) -> dict[str, Any]:
    """Accept JSON or form encoded install bodies; anything else is empty."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        raw = await request.body()
        if not raw.strip():
            return {}
        try:
            data = await request.json()
        except ValueError as exc:
            raise ValidationFailedError("Install body is not valid JSON") from exc
        if not isinstance(data, dict):
            raise ValidationFailedError("Install body must be a JSON object")
        return data
    if "form" in content_type:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    return {}


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {
        "status": "OK",
        "service": "Bitrix24 OAuth Integration",
        "timestamp": utc_timestamp(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
    }


@router.post("/install", response_model=InstallResponse)
async def install(
    request: Request,
    service: Annotated[InstallService, Depends(get_install_service)],
) -> InstallResponse:
    """Handle the install callback in any of the three shapes Bitrix24 uses."""
    body = await _read_body(request)
    payload = parse_install_payload(body, dict(request.query_params))
    record = await service.install(payload)
    return InstallResponse(
        message="Application installed successfully",
        domain=record.domain,
        member_id=record.member_id,
        timestamp=utc_timestamp(),
    )


@router.get("/install", response_model=InstallResponse)
async def install_via_get(
    request: Request,
    service: Annotated[InstallService, Depends(get_install_service)],
) -> InstallResponse:
    """Some portal configurations redirect the OAuth code with a GET."""
    query = dict(request.query_params)
    if not query.get("code") or not query.get("domain"):
        raise ValidationFailedError("Missing required parameters: code and domain")

    payload = parse_install_payload({}, query)
    if not isinstance(payload, AuthCodeInstall):
        raise ValidationFailedError("GET install only accepts an authorization code")

    record = await service.install(payload)
    return InstallResponse(
        message="Application installed successfully via GET",
        domain=record.domain,
        member_id=record.member_id,
        timestamp=utc_timestamp(),
    )


@router.get("/domains", status_code=HTTPStatus.OK)
async def list_domains(
    tokens: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> dict:
    """List every portal with stored credentials."""
    now = int(time.time())
    records = tokens.list_credentials()
    return success(
        count=len(records),
        domains=[
            {
                "domain": record.domain,
                "member_id": record.member_id,
                "created_at": epoch_to_iso(record.created_at),
                "expires_at": epoch_to_iso(record.expires_at),
                "is_expired": record.is_expired(now=now),
            }
            for record in records
        ],
    )


@router.delete("/domains/{domain}", status_code=HTTPStatus.OK)
async def forget_domain(
    domain: DomainPath,
    tokens: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> dict:
    """Drop the stored credentials of a portal."""
    if not tokens.forget(domain):
        raise NotFoundError(f"No credentials stored for domain: {domain}")
    return success(domain=domain, message="Credentials removed")


@router.post("/refresh/{domain}", status_code=HTTPStatus.OK)
async def refresh_token(
    domain: DomainPath,
    tokens: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
) -> dict:
    """Force a token refresh for a portal."""
    logger.info("Manual token refresh for domain %s", domain)
    record = await tokens.refresh(domain)
    return success(
        domain=domain,
        message="Token refreshed successfully",
        expires_at=epoch_to_iso(record.expires_at),
    )


@router.post("/api/{domain}/{method}", status_code=HTTPStatus.OK)
async def call_api(
    domain: DomainPath,
    gateway: Annotated[BitrixGateway, Depends(get_bitrix_gateway)],
    method: str = Path(
        ..., pattern=r"^[A-Za-z0-9_.]+$", description="REST method, e.g. crm.deal.list."
    ),
    payload: dict[str, Any] | None = Body(default=None),
) -> dict:
    """Forward an arbitrary REST method call for a portal."""
    logger.info("API call %s for domain %s", method, domain)
    response = await gateway.call_envelope(domain, method, payload or {})
    return success(
        domain=domain,
        method=method,
        result=response.model_dump(exclude_none=True),
    )


@router.get("/test/{domain}", status_code=HTTPStatus.OK)
async def test_api(
    domain: DomainPath,
    tokens: Annotated[TokenLifecycleManager, Depends(get_token_manager)],
    gateway: Annotated[BitrixGateway, Depends(get_bitrix_gateway)],
) -> dict:
    """Smoke-test a portal: a contact sample and the application info."""
    if not tokens.is_authenticated(domain):
        raise NotAuthenticatedError()

    contacts, app_info = await asyncio.gather(
        gateway.call_envelope(
            domain,
            "crm.contact.list",
            {"start": 0, "select": ["ID", "NAME", "LAST_NAME"], "order": {"ID": "DESC"}},
        ),
        gateway.call_envelope(domain, "app.info"),
    )
    sample = list(contacts.result or [])
    return success(
        domain=domain,
        tests={
            "contacts": {
                "total": contacts.total or 0,
                "retrieved": len(sample),
                "sample": sample[:3],
            },
            "appInfo": {
                "status": "success" if app_info.result is not None else "failed",
                "data": app_info.result,
            },
        },
    )


__all__ = ["router"]
