"""Service layer exports."""

from .bitrix_gateway import BitrixGateway
from .contacts import ContactsService
from .install import InstallService
from .outcomes import StepOutcome, run_non_fatal
from .token_cipher import TokenCipherService
from .token_lifecycle import TokenLifecycleManager

__all__ = [
    "BitrixGateway",
    "ContactsService",
    "InstallService",
    "StepOutcome",
    "TokenCipherService",
    "TokenLifecycleManager",
    "run_non_fatal",
]
