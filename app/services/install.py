"""
Installation flow: persist portal credentials, then probe the REST API.
"""

from __future__ import annotations

import logging

from app.models.credentials import CredentialRecord
from app.schemas.install import AuthCodeInstall, DirectTokenInstall, HybridFormInstall
from app.services.bitrix_gateway import BitrixGateway
from app.services.outcomes import run_non_fatal
from app.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class InstallService:
    """Store credentials for every supported install payload shape."""

    _PROBE_PAYLOAD = {
        "start": 0,
        "select": ["ID", "NAME", "LAST_NAME", "EMAIL", "PHONE"],
        "order": {"ID": "DESC"},
        "filter": {},
    }

    def __init__(self, token_manager: TokenLifecycleManager, gateway: BitrixGateway) -> None:
        self._tokens = token_manager
        self._gateway = gateway

    async def install(
        self, payload: DirectTokenInstall | HybridFormInstall | AuthCodeInstall
    ) -> CredentialRecord:
        logger.info("Handling %s install for domain %s", payload.kind, payload.domain)
        if isinstance(payload, AuthCodeInstall):
            record = await self._tokens.exchange_code(payload)
        else:
            record = self._tokens.store_direct_token(payload)

        await self._probe(record.domain)
        return record

    async def _probe(self, domain: str) -> None:
        """List a few contacts to confirm the stored token works."""
        outcome = await run_non_fatal(
            "verify installation",
            self._gateway.call_envelope(domain, "crm.contact.list", self._PROBE_PAYLOAD),
        )
        if outcome.ok:
            sample = outcome.value.result or []
            logger.info(
                "Installation verified for %s; retrieved %d contact(s)", domain, len(sample)
            )
        else:
            logger.warning(
                "Installation completed for %s but API test failed: %s", domain, outcome.error
            )


__all__ = ["InstallService"]
