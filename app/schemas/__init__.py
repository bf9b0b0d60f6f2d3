"""Public schema exports."""

from .contacts import (
    Address,
    BankInfo,
    BankInfoRead,
    Contact,
    ContactCreate,
    ContactList,
    ContactListQuery,
    ContactUpdate,
)
from .install import (
    AuthCodeInstall,
    DirectTokenInstall,
    HybridFormInstall,
    InstallPayload,
    InstallResponse,
    classify_install_payload,
    parse_install_payload,
)

__all__ = [
    "Address",
    "AuthCodeInstall",
    "BankInfo",
    "BankInfoRead",
    "Contact",
    "ContactCreate",
    "ContactList",
    "ContactListQuery",
    "ContactUpdate",
    "DirectTokenInstall",
    "HybridFormInstall",
    "InstallPayload",
    "InstallResponse",
    "classify_install_payload",
    "parse_install_payload",
]
