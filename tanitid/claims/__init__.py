"""Claim sets supported by the wallet: EU PID and Tunisian CIN."""
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

PID_VCT = "eu.europa.ec.eudi.pid.1"
CIN_VCT = "tn.gov.moi.cin.1"


class CredentialKind(str, Enum):
    PID = "pid"
    CIN = "cin"


VCT_BY_KIND = {
    CredentialKind.PID: PID_VCT,
    CredentialKind.CIN: CIN_VCT,
}
KIND_BY_VCT = {vct: kind for kind, vct in VCT_BY_KIND.items()}


def kind_for_vct(vct: str) -> Optional[CredentialKind]:
    return KIND_BY_VCT.get(vct)


def find_missing_fields(claims: Mapping[str, Any], mandatory: Iterable[str]) -> List[str]:
    """Return every mandatory field that is absent, None or the empty string."""
    return [
        field
        for field in mandatory
        if claims.get(field) is None or claims.get(field) == ""
    ]


def field_labels(kind: CredentialKind) -> Dict[str, str]:
    """Consent-screen labels for a credential kind."""
    from .cin import CIN_FIELD_LABELS
    from .pid import PID_FIELD_LABELS

    if kind is CredentialKind.CIN:
        # CIN requests may still name PID fields
        return {**PID_FIELD_LABELS, **CIN_FIELD_LABELS}
    return dict(PID_FIELD_LABELS)


def parse_claims(kind: CredentialKind, claims: Mapping[str, Any]):
    """Build the typed claim set for `kind`; raises pydantic's ValidationError."""
    from .cin import CinClaims
    from .pid import PidClaims

    model = CinClaims if kind is CredentialKind.CIN else PidClaims
    return model.model_validate({k: v for k, v in claims.items() if k != "kind"})
