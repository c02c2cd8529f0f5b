"""SD-JWT-VC issuance, selective presentation, verification and decoding.

Compact serialization::

    <header>.<payload>.<signature>~<disclosure_1>~...~<disclosure_n>~[<kb-jwt>]

Disclosures, digests, signing and key binding are handled by the ``sd-jwt``
package. This module adds the VC envelope, fail-closed verification and a
lenient decoder for display.
"""
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sd_jwt.common import SDObj
from sd_jwt.holder import SDJWTHolder
from sd_jwt.issuer import SDJWTIssuer
from sd_jwt.verifier import SDJWTVerifier

from .errors import CryptoError, PresentationError
from .keys import SIGNING_ALG, KeyProvider, b64url_decode

LOGGER = logging.getLogger(__name__)

SD_JWT_TYP = "vc+sd-jwt"
SD_ALG = "sha-256"
SEPARATOR = "~"
DEFAULT_VALIDITY = 365 * 24 * 60 * 60

# Envelope claims that stay in the signed payload and can never be disclosed
RESERVED_CLAIMS = {"vct", "iss", "iat", "nbf", "exp", "cnf", "_sd", "_sd_alg"}


def parse_jwt_unverified(token: str):
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Invalid JWT format")
    header = json.loads(b64url_decode(parts[0]))
    payload = json.loads(b64url_decode(parts[1]))
    if not isinstance(header, dict) or not isinstance(payload, dict):
        raise ValueError("JWT header and payload must be JSON objects")
    return header, payload


def check_standard_claims(claims: Mapping[str, Any], name: str = "JWT"):
    now = int(time.time())
    if "exp" in claims and now > claims["exp"]:
        raise ValueError(f"{name} expired (exp) {claims['exp']}  {now}")
    if "nbf" in claims and now < claims["nbf"]:
        raise ValueError(f"{name} not valid yet (nbf)")
    if "iat" in claims and now < claims["iat"] - 10:
        raise ValueError(f"{name} issued in the future (iat)")


def split_sd_jwt(serialized: str) -> Tuple[str, List[str], Optional[str]]:
    """Split into issuer JWT, disclosures and key-binding JWT without validating them."""
    parts = serialized.split(SEPARATOR)
    if not parts[0]:
        raise ValueError("Missing issuer JWT")
    if len(parts) == 1:
        return parts[0], [], None
    # The trailing element is empty unless a key-binding JWT follows the last "~"
    return parts[0], [d for d in parts[1:-1] if d], parts[-1] or None


def decode_disclosure(encoded: str) -> Tuple[str, Any]:
    decoded = json.loads(b64url_decode(encoded))
    if not isinstance(decoded, list) or len(decoded) != 3 or not isinstance(decoded[1], str):
        raise ValueError("Disclosure must be a [salt, claim_name, claim_value] array")
    return decoded[1], decoded[2]


@dataclass
class VerificationResult:
    valid: bool
    claims: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class DecodedSdJwt:
    header: Dict[str, Any]
    payload: Dict[str, Any]
    disclosure_count: int


class SdJwtVc:
    """SD-JWT-VC engine bound to an issuer key provider.

    The same engine instance issues, presents and verifies. ``holder_keys`` signs
    key-binding JWTs and is advertised in the credential's ``cnf`` claim; when it
    is omitted the issuer key doubles as the holder key.
    """

    def __init__(
        self,
        keys: KeyProvider,
        issuer: str,
        holder_keys: Optional[KeyProvider] = None,
        validity: int = DEFAULT_VALIDITY,
    ):
        self.keys = keys
        self.issuer = issuer
        self.holder_keys = holder_keys or keys
        self.validity = validity

    async def issue(
        self,
        claims: Mapping[str, Any],
        vct: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Issue an SD-JWT-VC where every claim is selectively disclosable."""
        reserved = RESERVED_CLAIMS.intersection(claims)
        if reserved:
            raise ValueError(f"Claims reserved by the SD-JWT envelope: {', '.join(sorted(reserved))}")

        now = int(time.time())
        user_claims: Dict[Any, Any] = dict(metadata or {})
        user_claims.update(
            {
                "vct": vct,
                "iss": self.issuer,
                "iat": now,
                "nbf": now,
                "exp": now + self.validity,
            }
        )
        disclosable = {SDObj(name): value for name, value in claims.items() if value is not None}
        user_claims.update(disclosable)

        try:
            sd_jwt_issuer = SDJWTIssuer(
                user_claims,
                self.keys.jwk,
                holder_key=self.holder_keys.jwk,
                sign_alg=SIGNING_ALG,
                extra_header_parameters={"typ": SD_JWT_TYP, "kid": self.keys.did},
            )
        except Exception as e:
            raise CryptoError(f"Failed to issue SD-JWT: {e}") from e

        LOGGER.info("Issued %s credential with %d disclosures", vct, len(disclosable))
        return sd_jwt_issuer.sd_jwt_issuance

    async def present(
        self,
        serialized: str,
        selected_fields: Iterable[str],
        nonce: str,
        audience: Optional[str] = None,
    ) -> str:
        """Derive a presentation that only carries disclosures for `selected_fields`.

        The issuer JWT is copied byte for byte. With an `audience` a key-binding
        JWT over `nonce`, `audience` and the presentation's ``sd_hash`` is appended.
        """
        claims_to_disclose = {name: True for name in selected_fields}
        try:
            holder = SDJWTHolder(serialized)
            if audience:
                holder.create_presentation(
                    claims_to_disclose, nonce, audience, self.holder_keys.jwk, SIGNING_ALG
                )
            else:
                holder.create_presentation(claims_to_disclose)
        except Exception as e:
            raise PresentationError(f"Cannot derive presentation: {e}") from e

        LOGGER.debug(
            "Presenting %d disclosures (key binding: %s)",
            len(holder.hs_disclosures),
            bool(audience),
        )
        return holder.sd_jwt_presentation

    async def verify(
        self,
        serialized: str,
        nonce: Optional[str] = None,
        audience: Optional[str] = None,
    ) -> VerificationResult:
        """Verify a credential or presentation; never raises.

        With `nonce` or `audience` a key-binding JWT is required, and both must
        then be given for it to match.
        """
        try:
            claims = await self._verify(serialized, nonce, audience)
        except Exception as e:
            LOGGER.warning("SD-JWT verification failed: %s", e)
            return VerificationResult(valid=False, error=str(e) or e.__class__.__name__)
        return VerificationResult(valid=True, claims=claims)

    async def _verify(self, serialized, nonce, audience) -> Dict[str, Any]:
        jwt, disclosures, kb_jwt = split_sd_jwt(serialized)
        header, payload = parse_jwt_unverified(jwt)
        if header.get("alg") != SIGNING_ALG:
            raise CryptoError(f"Unsupported alg: {header.get('alg')}")
        if (nonce is not None or audience is not None) and not kb_jwt:
            raise CryptoError("Key-binding JWT required but missing")

        verifier = SDJWTVerifier(
            serialized,
            lambda issuer, header_parameters: self.keys.jwk,
            expected_aud=audience,
            expected_nonce=nonce,
        )
        claims = verifier.get_verified_payload()
        check_standard_claims(payload, name="Verifiable Credential")

        # Disclosures whose digest is not committed are ignored by the library
        committed = set(payload.get("_sd", []))
        for encoded in disclosures:
            if await self.keys.hash(encoded) not in committed:
                name, _ = decode_disclosure(encoded)
                raise CryptoError(f"Disclosure for '{name}' is not committed in _sd")

        return {k: v for k, v in claims.items() if k not in ("_sd", "_sd_alg")}

    @staticmethod
    def decode(serialized: str) -> DecodedSdJwt:
        """Decode without verifying anything; malformed disclosures are skipped.

        For display only, never a trust decision.
        """
        jwt, disclosures, _ = split_sd_jwt(serialized)
        header, payload = parse_jwt_unverified(jwt)
        for encoded in disclosures:
            try:
                name, value = decode_disclosure(encoded)
            except (ValueError, RecursionError):
                continue
            payload[name] = value
        return DecodedSdJwt(header, payload, len(disclosures))
