"""
Database Module

Credential store backends and the account record model.

Usage:
    from face_auth.db import create_store, AccountRecord

    store = create_store(settings)
    record = store.get("a@x.com")
"""

from .models import AccountRecord, normalize_identifier
from .store import (
    DEFAULT_KEY_PREFIX,
    CredentialStore,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
    create_store,
)

__all__ = [
    'AccountRecord',
    'normalize_identifier',
    'DEFAULT_KEY_PREFIX',
    'CredentialStore',
    'InMemoryCredentialStore',
    'JsonFileCredentialStore',
    'create_store',
]
