"""In-memory credential store owned by the holder for the lifetime of a session."""
import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from ..claims import CredentialKind, PID_VCT, kind_for_vct
from ..models import StoredCredential
from ..sd_jwt import RESERVED_CLAIMS, SdJwtVc

LOGGER = logging.getLogger(__name__)


def _credential_kind(vct: str, claims: Mapping[str, Any]) -> CredentialKind:
    if "kind" in claims:
        return CredentialKind(claims["kind"])
    kind = kind_for_vct(vct)
    if kind is None:
        raise ValueError(f"Unsupported credential type: {vct}")
    return kind


class CredentialStore:
    def __init__(self):
        self._credentials: Dict[str, StoredCredential] = {}

    def add(self, raw: str, claims: Optional[Mapping[str, Any]] = None) -> StoredCredential:
        """Store a raw SD-JWT-VC. Claims default to what its disclosures carry."""
        decoded = SdJwtVc.decode(raw)
        vct = decoded.payload.get("vct") or PID_VCT
        if claims is None:
            claims = {
                k: v for k, v in decoded.payload.items() if k not in RESERVED_CLAIMS
            }
        kind = _credential_kind(vct, claims)
        claims = {k: v for k, v in claims.items() if k != "kind"}

        if kind is CredentialKind.CIN:
            issued_at, expires_at = claims.get("date_delivrance"), claims.get("date_expiration")
        else:
            issued_at, expires_at = claims.get("issuance_date"), claims.get("expiry_date")

        stored = StoredCredential(
            id=str(uuid.uuid4()),
            raw=raw,
            vct=vct,
            kind=kind,
            claims=claims,
            issued_at=str(issued_at or ""),
            expires_at=str(expires_at or ""),
            issuer=decoded.payload.get("iss") or "unknown",
        )
        self._credentials[stored.id] = stored
        LOGGER.info("Stored %s credential %s", kind.value, stored.id)
        return stored

    def get(self, credential_id: str) -> Optional[StoredCredential]:
        return self._credentials.get(credential_id)

    def remove(self, credential_id: str) -> bool:
        return self._credentials.pop(credential_id, None) is not None

    def list_credentials(self) -> List[StoredCredential]:
        return list(self._credentials.values())

    def find_by_vct(self, vct: str) -> List[StoredCredential]:
        return [c for c in self._credentials.values() if c.vct == vct]

    def clear(self):
        self._credentials.clear()

    def __len__(self):
        return len(self._credentials)
