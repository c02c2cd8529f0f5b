"""Key material and the hash / sign / verify primitives used by the SD-JWT engine.

A :class:`KeyProvider` wraps one P-256 key pair. It is created once when a service
starts and handed to the engines that need it, so "generate once per run" holds
without any module-level key cache.
"""
import base64
import binascii
import hashlib
import json
import logging

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from jwcrypto import jwk

from .errors import CryptoError

LOGGER = logging.getLogger(__name__)

SIGNING_ALG = "ES256"
DID_JWK_PREFIX = "did:jwk:"
_COORDINATE_SIZE = 32


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def sha256_digest(data: str) -> str:
    """SHA-256 over the UTF-8 bytes of `data`, base64url without padding."""
    return b64url_encode(hashlib.sha256(data.encode("utf-8")).digest())


class KeyProvider:
    """One ES256 key pair plus the primitives built on it."""

    def __init__(self, key: jwk.JWK):
        if key.get("kty") != "EC" or key.get("crv") != "P-256":
            raise CryptoError("Only EC P-256 keys are supported")
        self._key = key

    @classmethod
    def generate(cls) -> "KeyProvider":
        LOGGER.info("Generating new P-256 key pair")
        return cls(jwk.JWK.generate(kty="EC", crv="P-256"))

    @classmethod
    def from_jwk(cls, key_data: dict) -> "KeyProvider":
        try:
            key = jwk.JWK.from_json(json.dumps(key_data))
        except Exception as e:
            raise CryptoError(f"Invalid JWK: {e}") from e
        return cls(key)

    @classmethod
    def from_did_jwk(cls, did: str) -> "KeyProvider":
        # did:jwk:{base64url(jwk)}
        if not did.startswith(DID_JWK_PREFIX):
            raise CryptoError("Not a did:jwk")
        try:
            key_data = json.loads(b64url_decode(did[len(DID_JWK_PREFIX):]))
        except (ValueError, binascii.Error) as e:
            raise CryptoError(f"Malformed did:jwk: {e}") from e
        return cls.from_jwk(key_data)

    @property
    def jwk(self) -> jwk.JWK:
        return self._key

    @property
    def has_private(self) -> bool:
        return self._key.has_private

    @property
    def public_jwk(self) -> dict:
        return self._key.export_public(as_dict=True)

    @property
    def did(self) -> str:
        pub_str = json.dumps(self.public_jwk, separators=(",", ":")).encode("utf-8")
        return f"{DID_JWK_PREFIX}{b64url_encode(pub_str)}"

    async def hash(self, data: str) -> str:
        return sha256_digest(data)

    async def sign(self, data: str) -> str:
        """ECDSA P-256 / SHA-256 over `data`, returned as base64url raw r||s."""
        if not self.has_private:
            raise CryptoError("Cannot sign with a public-only key")
        try:
            private_key = self._key.get_op_key("sign")
            der = private_key.sign(data.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
        except Exception as e:
            raise CryptoError(f"Signing failed: {e}") from e
        r, s = decode_dss_signature(der)
        raw = r.to_bytes(_COORDINATE_SIZE, "big") + s.to_bytes(_COORDINATE_SIZE, "big")
        return b64url_encode(raw)

    async def verify(self, data: str, signature: str) -> bool:
        try:
            raw = b64url_decode(signature)
        except (ValueError, binascii.Error):
            return False
        if len(raw) != 2 * _COORDINATE_SIZE:
            return False

        r = int.from_bytes(raw[:_COORDINATE_SIZE], "big")
        s = int.from_bytes(raw[_COORDINATE_SIZE:], "big")
        public_key = self._key.get_op_key("verify")
        try:
            public_key.verify(
                encode_dss_signature(r, s),
                data.encode("utf-8"),
                ec.ECDSA(hashes.SHA256()),
            )
        except InvalidSignature:
            return False
        return True
