"""
Contact operations composed from several Bitrix24 REST calls.

A contact's bank account is not a native contact field: it lives in a
requisite linked to the contact and a bank detail linked to that requisite.
The first requisite found for a contact is treated as canonical.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from app.core.errors import NotFoundError, RemoteApiError
from app.schemas.contacts import (
    Address,
    BankInfo,
    BankInfoRead,
    Contact,
    ContactCreate,
    ContactList,
    ContactListQuery,
    ContactUpdate,
)
from app.services.bitrix_gateway import BitrixGateway
from app.services.outcomes import run_non_fatal

logger = logging.getLogger(__name__)

CONTACT_ENTITY_TYPE_ID = 3
DEFAULT_REQUISITE_PRESET_ID = 1
REQUISITE_TITLE = "Bank details"
BANK_DETAIL_TITLE = "Bank account"

_CONTACT_SELECT = [
    "ID",
    "NAME",
    "LAST_NAME",
    "SECOND_NAME",
    "EMAIL",
    "PHONE",
    "WEB",
    "ADDRESS",
    "ADDRESS_2",
    "ADDRESS_CITY",
    "ADDRESS_REGION",
    "ADDRESS_PROVINCE",
    "COMMENTS",
    "DATE_CREATE",
    "DATE_MODIFY",
    "ASSIGNED_BY_ID",
]


class ContactsService:
    """Contact CRUD for one portal per call, backed by the REST gateway."""

    def __init__(self, gateway: BitrixGateway) -> None:
        self._gateway = gateway

    async def list_contacts(self, domain: str, query: ContactListQuery) -> ContactList:
        start = (query.page - 1) * query.limit

        filters: Dict[str, Any] = {}
        if query.search:
            filters["%NAME"] = query.search
        if query.email:
            filters["%EMAIL"] = query.email
        if query.phone:
            filters["%PHONE"] = query.phone

        response = await self._gateway.call_envelope(
            domain,
            "crm.contact.list",
            {
                "start": start,
                "order": {query.order_by: query.order},
                "filter": filters,
                "select": _CONTACT_SELECT,
            },
        )

        rows = response.result or []
        total = response.total or 0
        return ContactList(
            contacts=[self._to_contact(row) for row in rows[: query.limit]],
            total=total,
            page=query.page,
            limit=query.limit,
            total_pages=math.ceil(total / query.limit),
        )

    async def get_contact(self, domain: str, contact_id: str) -> Contact:
        contact = self._to_contact(await self._fetch_contact(domain, contact_id))

        outcome = await run_non_fatal(
            "read bank info", self._read_bank_info(domain, contact_id)
        )
        if not outcome.ok:
            logger.warning(
                "Could not get bank info for contact %s: %s", contact_id, outcome.error
            )
        elif outcome.value is not None:
            contact.bank_info = outcome.value
        return contact

    async def create_contact(self, domain: str, payload: ContactCreate) -> Contact:
        fields = self._to_bitrix_fields(payload)
        contact_id = str(
            await self._gateway.call(domain, "crm.contact.add", {"fields": fields})
        )
        logger.info("Contact created with ID %s on %s", contact_id, domain)

        if payload.bank_info is not None:
            outcome = await run_non_fatal(
                "create bank info",
                self._create_bank_info(domain, contact_id, payload.bank_info),
            )
            if outcome.ok:
                logger.info("Bank info added for contact %s", contact_id)
            else:
                logger.warning(
                    "Could not add bank info for contact %s: %s", contact_id, outcome.error
                )

        return await self.get_contact(domain, contact_id)

    async def update_contact(
        self, domain: str, contact_id: str, payload: ContactUpdate
    ) -> Contact:
        await self._fetch_contact(domain, contact_id)

        fields = self._to_bitrix_fields(payload)
        if fields:
            await self._gateway.call(
                domain, "crm.contact.update", {"id": contact_id, "fields": fields}
            )
            logger.info("Contact %s updated", contact_id)

        if payload.bank_info is not None:
            outcome = await run_non_fatal(
                "update bank info",
                self._upsert_bank_info(domain, contact_id, payload.bank_info),
            )
            if outcome.ok:
                logger.info("Bank info updated for contact %s", contact_id)
            else:
                logger.warning(
                    "Could not update bank info for contact %s: %s",
                    contact_id,
                    outcome.error,
                )

        return await self.get_contact(domain, contact_id)

    async def delete_contact(self, domain: str, contact_id: str) -> None:
        await self._fetch_contact(domain, contact_id)

        outcome = await run_non_fatal(
            "delete bank info", self._delete_requisites(domain, contact_id)
        )
        if outcome.ok:
            logger.info("Removed %s requisite(s) of contact %s", outcome.value, contact_id)
        else:
            logger.warning(
                "Could not delete bank info for contact %s: %s", contact_id, outcome.error
            )

        await self._gateway.call(domain, "crm.contact.delete", {"id": contact_id})
        logger.info("Contact %s deleted", contact_id)

    async def _fetch_contact(self, domain: str, contact_id: str) -> Dict[str, Any]:
        try:
            raw = await self._gateway.call(domain, "crm.contact.get", {"id": contact_id})
        except RemoteApiError as exc:
            if exc.is_not_found:
                raise NotFoundError(f"Contact {contact_id} not found") from exc
            raise
        if not raw:
            raise NotFoundError(f"Contact {contact_id} not found")
        return raw

    async def _find_requisites(
        self, domain: str, contact_id: str, select: List[str]
    ) -> List[Dict[str, Any]]:
        result = await self._gateway.call(
            domain,
            "crm.requisite.list",
            {
                "filter": {
                    "ENTITY_TYPE_ID": CONTACT_ENTITY_TYPE_ID,
                    "ENTITY_ID": contact_id,
                },
                "select": select,
            },
        )
        return list(result or [])

    async def _find_bank_details(
        self, domain: str, requisite_id: str
    ) -> List[Dict[str, Any]]:
        result = await self._gateway.call(
            domain,
            "crm.requisite.bankdetail.list",
            {
                "filter": {"ENTITY_ID": requisite_id},
                "select": ["ID", "NAME", "RQ_BANK_NAME", "RQ_ACC_NUM", "RQ_ACC_NAME"],
            },
        )
        return list(result or [])

    async def _read_bank_info(
        self, domain: str, contact_id: str
    ) -> Optional[BankInfoRead]:
        requisites = await self._find_requisites(
            domain, contact_id, ["ID", "NAME", "RQ_NAME"]
        )
        if not requisites:
            return None

        requisite = requisites[0]
        details = await self._find_bank_details(domain, str(requisite["ID"]))
        if not details:
            return None

        detail = details[0]
        return BankInfoRead(
            bank_name=detail.get("RQ_BANK_NAME"),
            account_number=detail.get("RQ_ACC_NUM"),
            account_holder=detail.get("RQ_ACC_NAME") or requisite.get("RQ_NAME"),
        )

    async def _create_bank_info(
        self, domain: str, contact_id: str, bank_info: BankInfo
    ) -> str:
        requisite_id = str(
            await self._gateway.call(
                domain,
                "crm.requisite.add",
                {
                    "fields": {
                        "ENTITY_TYPE_ID": CONTACT_ENTITY_TYPE_ID,
                        "ENTITY_ID": contact_id,
                        "PRESET_ID": DEFAULT_REQUISITE_PRESET_ID,
                        "NAME": REQUISITE_TITLE,
                        "RQ_NAME": bank_info.account_holder or bank_info.bank_name,
                    }
                },
            )
        )
        logger.debug("Requisite %s created for contact %s", requisite_id, contact_id)

        await self._gateway.call(
            domain,
            "crm.requisite.bankdetail.add",
            {"fields": {"ENTITY_ID": requisite_id, **self._bank_detail_fields(bank_info)}},
        )
        return requisite_id

    async def _upsert_bank_info(
        self, domain: str, contact_id: str, bank_info: BankInfo
    ) -> str:
        requisites = await self._find_requisites(domain, contact_id, ["ID"])
        if not requisites:
            return await self._create_bank_info(domain, contact_id, bank_info)

        requisite_id = str(requisites[0]["ID"])
        await self._gateway.call(
            domain,
            "crm.requisite.update",
            {
                "id": requisite_id,
                "fields": {"RQ_NAME": bank_info.account_holder or bank_info.bank_name},
            },
        )

        details = await self._find_bank_details(domain, requisite_id)
        if details:
            await self._gateway.call(
                domain,
                "crm.requisite.bankdetail.update",
                {"id": details[0]["ID"], "fields": self._bank_detail_fields(bank_info)},
            )
        else:
            await self._gateway.call(
                domain,
                "crm.requisite.bankdetail.add",
                {
                    "fields": {
                        "ENTITY_ID": requisite_id,
                        **self._bank_detail_fields(bank_info),
                    }
                },
            )
        return requisite_id

    async def _delete_requisites(self, domain: str, contact_id: str) -> int:
        requisites = await self._find_requisites(domain, contact_id, ["ID"])
        for requisite in requisites:
            await self._gateway.call(
                domain, "crm.requisite.delete", {"id": requisite["ID"]}
            )
        return len(requisites)

    @staticmethod
    def _bank_detail_fields(bank_info: BankInfo) -> Dict[str, Any]:
        return {
            "NAME": BANK_DETAIL_TITLE,
            "RQ_BANK_NAME": bank_info.bank_name,
            "RQ_ACC_NUM": bank_info.account_number,
            "RQ_ACC_NAME": bank_info.account_holder or bank_info.bank_name,
            "ACTIVE": "Y",
            "SORT": 100,
        }

    @staticmethod
    def _to_bitrix_fields(payload: ContactUpdate) -> Dict[str, Any]:
        """Map base contact fields; bank info is never sent with the contact."""
        fields: Dict[str, Any] = {}
        if payload.name is not None:
            fields["NAME"] = payload.name
        if payload.last_name is not None:
            fields["LAST_NAME"] = payload.last_name
        if payload.comments is not None:
            fields["COMMENTS"] = payload.comments
        if payload.email is not None:
            fields["EMAIL"] = [{"VALUE": str(payload.email), "VALUE_TYPE": "WORK"}]
        if payload.phone is not None:
            fields["PHONE"] = [{"VALUE": payload.phone, "VALUE_TYPE": "WORK"}]
        if payload.website is not None:
            fields["WEB"] = [{"VALUE": payload.website, "VALUE_TYPE": "WORK"}]
        if payload.address is not None:
            address = payload.address
            if address.street is not None:
                fields["ADDRESS"] = address.street
            if address.district is not None:
                fields["ADDRESS_2"] = address.district
            if address.city is not None:
                fields["ADDRESS_CITY"] = address.city
            if address.ward is not None:
                fields["ADDRESS_REGION"] = address.ward
        return fields

    @staticmethod
    def _to_contact(raw: Dict[str, Any]) -> Contact:
        def first_value(key: str) -> Optional[str]:
            entries = raw.get(key) or []
            return entries[0].get("VALUE") if entries else None

        full = ", ".join(
            part
            for part in (
                raw.get("ADDRESS"),
                raw.get("ADDRESS_2"),
                raw.get("ADDRESS_CITY"),
                raw.get("ADDRESS_REGION"),
                raw.get("ADDRESS_PROVINCE"),
            )
            if part
        )
        address = None
        if full:
            address = Address(
                street=raw.get("ADDRESS"),
                ward=raw.get("ADDRESS_REGION"),
                district=raw.get("ADDRESS_2"),
                city=raw.get("ADDRESS_CITY"),
                full=full,
            )

        assigned_by = raw.get("ASSIGNED_BY_ID")
        return Contact(
            id=str(raw.get("ID")),
            name=raw.get("NAME"),
            last_name=raw.get("LAST_NAME"),
            phone=first_value("PHONE"),
            email=first_value("EMAIL"),
            website=first_value("WEB"),
            address=address,
            comments=raw.get("COMMENTS"),
            date_create=raw.get("DATE_CREATE"),
            date_modify=raw.get("DATE_MODIFY"),
            assigned_by=str(assigned_by) if assigned_by is not None else None,
        )


__all__ = ["ContactsService"]
