"""
Pydantic models for the contact endpoints.

Bodies are exchanged in camelCase; snake_case input is accepted as well.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

ContactOrderField = Literal["ID", "NAME", "LAST_NAME", "DATE_CREATE", "DATE_MODIFY"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Address(CamelModel):
    """Postal address projected onto the contact's ADDRESS_* fields."""

    street: Optional[str] = Field(None, description="Street and house number.")
    ward: Optional[str] = Field(None, description="Ward, stored as ADDRESS_REGION.")
    district: Optional[str] = Field(None, description="District, stored as ADDRESS_2.")
    city: Optional[str] = None
    full: Optional[str] = Field(
        None, description="Read-only comma separated rendering of the address."
    )


class BankInfo(CamelModel):
    """Bank account kept in a requisite + bank detail pair."""

    bank_name: str = Field(..., min_length=1, description="Bank name.")
    account_number: str = Field(..., min_length=1, description="Account number.")
    account_holder: Optional[str] = Field(None, description="Account holder name.")


class BankInfoRead(CamelModel):
    """Bank account as reported by the CRM; any field may be blank."""

    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_holder: Optional[str] = None


class ContactUpdate(CamelModel):
    """Partial contact payload; only supplied fields are written."""

    name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    address: Optional[Address] = None
    bank_info: Optional[BankInfo] = None
    comments: Optional[str] = None


class ContactCreate(ContactUpdate):
    """Payload for creating a contact."""

    name: str = Field(..., min_length=1, description="Contact first name.")


class Contact(CamelModel):
    """Denormalized contact returned to API clients."""

    id: str
    name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[Address] = None
    bank_info: Optional[BankInfoRead] = None
    comments: Optional[str] = None
    date_create: Optional[str] = None
    date_modify: Optional[str] = None
    assigned_by: Optional[str] = None


class ContactListQuery(CamelModel):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    search: Optional[str] = Field(None, description="Substring match on NAME.")
    email: Optional[str] = None
    phone: Optional[str] = None
    order_by: ContactOrderField = "ID"
    order: Literal["ASC", "DESC"] = "DESC"


class ContactList(CamelModel):
    contacts: List[Contact] = Field(default_factory=list)
    total: int
    page: int
    limit: int
    total_pages: int


__all__ = [
    "Address",
    "BankInfo",
    "BankInfoRead",
    "Contact",
    "ContactCreate",
    "ContactList",
    "ContactListQuery",
    "ContactOrderField",
    "ContactUpdate",
]
