"""
Shared hashing / serialization / encryption core for every credential backend.

Physical layout of a stored value::

    nonce (12 bytes) || tag (16 bytes) || AES-256-GCM ciphertext

The plaintext is JSON in which binary values are written as
``{"type": "Buffer", "data": "<base64>"}``.
"""

import base64
import hashlib
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from wabot.errors import DecryptionFailed

NONCE_SIZE = 12
TAG_SIZE = 16


def storage_key(key: str) -> str:
    """Fixed-length physical key for a logical key (``creds``, ``<kind>-<id>``)."""
    return hashlib.md5(key.encode("utf-8")).hexdigest()


def _encode_buffers(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"type": "Buffer", "data": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        if value.get("type") == "Buffer" and isinstance(value.get("data"), list):
            return {"type": "Buffer", "data": base64.b64encode(bytes(value["data"])).decode("ascii")}
        return {k: _encode_buffers(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode_buffers(v) for v in value]
    return value


def _decode_buffer(obj: dict[str, Any]) -> Any:
    if obj.get("type") == "Buffer" and isinstance(obj.get("data"), str) and len(obj) == 2:
        return base64.b64decode(obj["data"])
    return obj


def dumps(value: Any) -> bytes:
    return json.dumps(_encode_buffers(value), separators=(",", ":")).encode("utf-8")


def loads(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"), object_hook=_decode_buffer)


class AES256GCM:
    """AES-256-GCM keyed by the SHA-256 of a secret string."""

    def __init__(self, secret: str):
        self._aes = AESGCM(hashlib.sha256(secret.encode("utf-8")).digest())

    def encrypt(self, plaintext: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aes.encrypt(nonce, plaintext, None)
        # cryptography appends the tag; the stored layout puts it up front.
        return nonce + sealed[-TAG_SIZE:] + sealed[:-TAG_SIZE]

    def decrypt(self, blob: bytes) -> bytes:
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionFailed("Stored record is truncated.", details={"size": len(blob)})
        nonce = blob[:NONCE_SIZE]
        tag = blob[NONCE_SIZE:NONCE_SIZE + TAG_SIZE]
        ciphertext = blob[NONCE_SIZE + TAG_SIZE:]
        try:
            return self._aes.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            raise DecryptionFailed() from None


class SecretCodec:
    """Value <-> encrypted blob, the one pipeline all backends share."""

    def __init__(self, secret: str):
        self._cipher = AES256GCM(secret)

    def encode(self, value: Any) -> bytes:
        return self._cipher.encrypt(dumps(value))

    def decode(self, blob: bytes) -> Any:
        plaintext = self._cipher.decrypt(bytes(blob))
        try:
            return loads(plaintext)
        except ValueError as e:
            raise DecryptionFailed(f"Stored record is not valid JSON: {e}") from None
