"""
Credential persistence — one encrypted store, three interchangeable backends.
"""

from wabot.auth.codec import AES256GCM, SecretCodec, storage_key
from wabot.auth.creds import init_auth_creds
from wabot.auth.local import LocalBackend
from wabot.auth.store import AuthState, CredentialStore, KeyAccessor, StorageBackend

__all__ = [
    "AES256GCM",
    "SecretCodec",
    "storage_key",
    "init_auth_creds",
    "LocalBackend",
    "AuthState",
    "CredentialStore",
    "KeyAccessor",
    "StorageBackend",
]
