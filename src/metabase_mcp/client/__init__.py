"""
Metabase upstream client package.

Exports:
    - MetabaseClient: Async REST client for the Metabase API (one per process).
    - CredentialManager: Owner of the API key or lazily fetched session token.
    - API_KEY_HEADER, SESSION_HEADER: Authentication header names.
"""

from ._credentials import API_KEY_HEADER, SESSION_HEADER, CredentialManager
from ._metabase_client import DATASET_PATH, SESSION_PATH, MetabaseClient

__all__ = [
    "MetabaseClient",
    "CredentialManager",
    "API_KEY_HEADER",
    "SESSION_HEADER",
    "DATASET_PATH",
    "SESSION_PATH",
]
