"""
Fresh credential bundles for identities that have never paired.

Transports with their own key formats can pass a different ``creds_factory``
to the credential store; the bundle is opaque to everything in wabot.
"""

import base64
import os
import secrets
from typing import Any, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519


def _raw_private(key: Union[x25519.X25519PrivateKey, ed25519.Ed25519PrivateKey]) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _raw_public(key: Union[x25519.X25519PublicKey, ed25519.Ed25519PublicKey]) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def generate_key_pair() -> dict[str, bytes]:
    private = x25519.X25519PrivateKey.generate()
    return {"private": _raw_private(private), "public": _raw_public(private.public_key())}


def generate_identity_key_pair() -> dict[str, bytes]:
    """Ed25519 pair; its public half verifies the signed pre-key."""
    private = ed25519.Ed25519PrivateKey.generate()
    return {"private": _raw_private(private), "public": _raw_public(private.public_key())}


def signed_key_pair(identity: dict[str, bytes], key_id: int) -> dict[str, Any]:
    pair = generate_key_pair()
    signer = ed25519.Ed25519PrivateKey.from_private_bytes(identity["private"])
    return {"keyPair": pair, "signature": signer.sign(pair["public"]), "keyId": key_id}


def generate_registration_id() -> int:
    return secrets.randbits(16) & 16383


def init_auth_creds() -> dict[str, Any]:
    identity = generate_identity_key_pair()
    return {
        "noiseKey": generate_key_pair(),
        "pairingEphemeralKeyPair": generate_key_pair(),
        "signedIdentityKey": identity,
        "signedPreKey": signed_key_pair(identity, 1),
        "registrationId": generate_registration_id(),
        "advSecretKey": base64.b64encode(os.urandom(32)).decode("ascii"),
        "processedHistoryMessages": [],
        "nextPreKeyId": 1,
        "firstUnuploadedPreKeyId": 1,
        "accountSyncCounter": 0,
        "accountSettings": {"unarchiveChats": False},
        "registered": False,
        "pairingCode": None,
        "lastPropHash": None,
        "routingInfo": None,
    }
