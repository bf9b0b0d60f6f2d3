"""
FastAPI routes exposing simplified contact management for a portal.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query

from app.api.envelope import success
from app.dependencies import get_contacts_service, get_tenant_domain
from app.schemas import ContactCreate, ContactListQuery, ContactUpdate
from app.schemas.contacts import ContactOrderField
from app.services import ContactsService

router = APIRouter(prefix="/contacts", tags=["Contacts"])
logger = logging.getLogger(__name__)

Tenant = Annotated[str, Depends(get_tenant_domain)]
Service = Annotated[ContactsService, Depends(get_contacts_service)]


@router.get("", status_code=HTTPStatus.OK)
async def list_contacts(
    domain: Tenant,
    service: Service,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = Query(None, description="Match on contact name."),
    email: str | None = Query(None),
    phone: str | None = Query(None),
    order_by: ContactOrderField = Query("ID", alias="orderBy"),
    order: Literal["ASC", "DESC"] = Query("DESC"),
) -> dict:
    """Paginated contact listing with optional filters."""
    query = ContactListQuery(
        page=page,
        limit=limit,
        search=search,
        email=email,
        phone=phone,
        order_by=order_by,
        order=order,
    )
    result = await service.list_contacts(domain, query)
    return success(data=result.model_dump(by_alias=True))


@router.get("/{contact_id}", status_code=HTTPStatus.OK)
async def get_contact(contact_id: str, domain: Tenant, service: Service) -> dict:
    contact = await service.get_contact(domain, contact_id)
    return success(data=contact.model_dump(by_alias=True))


@router.post("", status_code=HTTPStatus.CREATED)
async def create_contact(payload: ContactCreate, domain: Tenant, service: Service) -> dict:
    """Create a contact and, when supplied, its bank account."""
    contact = await service.create_contact(domain, payload)
    logger.info("Contact created successfully with ID %s", contact.id)
    return success(
        data={
            "id": contact.id,
            "message": "Contact created successfully",
            "contact": contact.model_dump(by_alias=True),
        }
    )


@router.put("/{contact_id}", status_code=HTTPStatus.OK)
async def update_contact(
    contact_id: str, payload: ContactUpdate, domain: Tenant, service: Service
) -> dict:
    contact = await service.update_contact(domain, contact_id, payload)
    return success(
        data={
            "id": contact_id,
            "message": "Contact updated successfully",
            "contact": contact.model_dump(by_alias=True),
        }
    )


@router.delete("/{contact_id}", status_code=HTTPStatus.OK)
async def delete_contact(contact_id: str, domain: Tenant, service: Service) -> dict:
    """Delete a contact together with its requisites."""
    await service.delete_contact(domain, contact_id)
    return success(data={"id": contact_id, "message": "Contact deleted successfully"})


__all__ = ["router"]
