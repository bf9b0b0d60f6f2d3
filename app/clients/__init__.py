"""Expose constructed client wrappers."""

from .bitrix_auth import BitrixOAuthClient, OAuthTokenExchangeError
from .bitrix_rest import BitrixResponse, BitrixRestClient
from .sqlite_store import SQLiteCredentialStore

__all__ = [
    "BitrixOAuthClient",
    "BitrixResponse",
    "BitrixRestClient",
    "OAuthTokenExchangeError",
    "SQLiteCredentialStore",
]
