"""OID4VP holder-side protocol: request parsing, credential matching, responses.

No cryptography happens here; presentations are built by :mod:`tanitid.sd_jwt`.
"""
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import parse_qs, urlencode

from pydantic import ValidationError

from .claims import CIN_VCT, PID_VCT
from .errors import ParseError
from .models import (
    SD_JWT_FORMAT,
    AuthorizationRequest,
    AuthorizationResponse,
    DescriptorMap,
    PresentationDefinition,
    PresentationSubmission,
    RequestedField,
    StoredCredential,
)

LOGGER = logging.getLogger(__name__)

OPENID4VP_SCHEME = "openid4vp://"
VP_TOKEN = "vp_token"
VCT_PATH = "$.vct"

# SD-JWT envelope names that are never shown as requested attributes
METADATA_FIELDS = {"vct", "iss", "iat", "exp", "nbf", "cnf"}

OPTIONAL_PARAMETERS = (
    "state",
    "response_mode",
    "response_uri",
    "redirect_uri",
    "client_id_scheme",
)


def claim_name(path: str) -> str:
    return path.replace("$.", "", 1)


def parse_authorization_request(uri: str) -> AuthorizationRequest:
    """Parse an ``openid4vp://`` URI with inline parameters.

    Example: ``openid4vp://?response_type=vp_token&client_id=...&nonce=...&presentation_definition={...}``
    """
    query = uri[len(OPENID4VP_SCHEME):] if uri.startswith(OPENID4VP_SCHEME) else uri
    query = query.lstrip("?")

    qs = parse_qs(query)

    def param(name: str) -> Optional[str]:
        return qs.get(name, [None])[0]

    response_type = param("response_type")
    if response_type != VP_TOKEN:
        raise ParseError(
            f'Unsupported response_type: {response_type}. Expected "{VP_TOKEN}".',
            parameter="response_type",
        )

    client_id = param("client_id")
    if not client_id:
        raise ParseError("Missing required parameter: client_id", parameter="client_id")

    nonce = param("nonce")
    if not nonce:
        raise ParseError("Missing required parameter: nonce", parameter="nonce")

    pd_raw = param("presentation_definition")
    if not pd_raw:
        raise ParseError(
            "Missing required parameter: presentation_definition",
            parameter="presentation_definition",
        )
    try:
        pd_data = json.loads(pd_raw)
    except ValueError:
        raise ParseError(
            "Invalid presentation_definition: not valid JSON",
            parameter="presentation_definition",
        )
    try:
        presentation_definition = PresentationDefinition.model_validate(pd_data)
    except ValidationError as e:
        raise ParseError(
            f"Invalid presentation_definition: {e.error_count()} validation error(s)",
            parameter="presentation_definition",
        ) from e

    optional = {name: param(name) for name in OPTIONAL_PARAMETERS if param(name)}
    request = AuthorizationRequest(
        response_type=VP_TOKEN,
        client_id=client_id,
        nonce=nonce,
        presentation_definition=presentation_definition,
        **optional,
    )
    LOGGER.info(
        "Parsed authorization request from %s (%d input descriptors)",
        client_id,
        len(presentation_definition.input_descriptors),
    )
    return request


def build_authorization_request_uri(request: AuthorizationRequest) -> str:
    """Encode a request as an ``openid4vp://`` URI understood by the parser."""
    params = {
        "response_type": request.response_type,
        "client_id": request.client_id,
        "nonce": request.nonce,
    }
    for name in OPTIONAL_PARAMETERS:
        value = getattr(request, name)
        if value:
            params[name] = value
    params["presentation_definition"] = request.presentation_definition.model_dump_json(
        exclude_none=True
    )
    return f"{OPENID4VP_SCHEME}?{urlencode(params)}"


def match_credentials(
    request: AuthorizationRequest, credentials: Sequence[StoredCredential]
) -> List[StoredCredential]:
    """Return held credentials satisfying any input descriptor, once each.

    A ``$.vct`` field with a non-empty ``const`` filter decides the match alone;
    otherwise every requested field must exist in the credential's claims.
    Values are not compared.
    """
    matched: Dict[str, StoredCredential] = {}

    for descriptor in request.presentation_definition.input_descriptors:
        if descriptor.format is not None and SD_JWT_FORMAT not in descriptor.format:
            LOGGER.debug("Skipping descriptor %s: format excludes %s", descriptor.id, SD_JWT_FORMAT)
            continue

        fields = descriptor.constraints.fields
        vct_constraint = next(
            (f for f in fields if any(p == VCT_PATH for p in f.path)), None
        )

        for cred in credentials:
            if vct_constraint and vct_constraint.filter and vct_constraint.filter.const:
                if cred.vct == vct_constraint.filter.const:
                    matched.setdefault(cred.id, cred)
            elif all(
                any(claim_name(p) in cred.claims for p in f.path) for f in fields
            ):
                matched.setdefault(cred.id, cred)

    return list(matched.values())


def extract_requested_fields(request: AuthorizationRequest) -> List[RequestedField]:
    fields: Dict[str, RequestedField] = {}

    for descriptor in request.presentation_definition.input_descriptors:
        for constraint in descriptor.constraints.fields:
            for path in constraint.path:
                name = claim_name(path)
                if name in METADATA_FIELDS or name in fields:
                    continue
                fields[name] = RequestedField(path=name, required=constraint.filter is not None)

    return list(fields.values())


def build_authorization_response(
    request: AuthorizationRequest, vp_token: str
) -> AuthorizationResponse:
    definition = request.presentation_definition
    submission = PresentationSubmission(
        id=f"ps-{uuid.uuid4()}",
        definition_id=definition.id,
        descriptor_map=[
            DescriptorMap(id=descriptor.id, format=SD_JWT_FORMAT, path="$")
            for descriptor in definition.input_descriptors
        ],
    )
    return AuthorizationResponse(
        vp_token=vp_token,
        presentation_submission=submission,
        state=request.state,
    )


# Demo requests


def _demo_request(
    client_id: str,
    definition: Dict[str, Any],
    nonce: Optional[str] = None,
    state: Optional[str] = None,
    response_uri: Optional[str] = None,
) -> AuthorizationRequest:
    return AuthorizationRequest(
        client_id=client_id,
        nonce=nonce or str(uuid.uuid4()),
        state=state or f"session-{int(time.time() * 1000)}",
        response_mode="direct_post",
        response_uri=response_uri,
        presentation_definition=PresentationDefinition.model_validate(definition),
    )


def create_demo_bank_request(**kwargs) -> AuthorizationRequest:
    """A bank verifier asking for basic PID attributes."""
    definition = {
        "id": "demo-bank-kyc-1",
        "name": "Bank KYC Verification",
        "purpose": "Verify your identity for account opening",
        "input_descriptors": [
            {
                "id": "eu-pid-basic",
                "name": "EU Person Identification Data",
                "purpose": "Basic identity verification",
                "format": {SD_JWT_FORMAT: {"sd-jwt_alg_values": ["ES256"]}},
                "constraints": {
                    "fields": [
                        {"path": [VCT_PATH], "filter": {"type": "string", "const": PID_VCT}},
                        {"path": ["$.family_name"]},
                        {"path": ["$.given_name"]},
                        {"path": ["$.age_over_18"]},
                    ]
                },
            }
        ],
    }
    return _demo_request("https://demo-bank.example.com", definition, **kwargs)


def create_demo_cin_request(**kwargs) -> AuthorizationRequest:
    """A government office asking for CIN identity attributes."""
    definition = {
        "id": "demo-admin-cin-1",
        "name": "Vérification CIN",
        "purpose": "Vérifier votre identité pour une démarche administrative",
        "input_descriptors": [
            {
                "id": "tn-cin-basic",
                "name": "Carte d'Identité Nationale",
                "purpose": "Identity check",
                "format": {SD_JWT_FORMAT: {"sd-jwt_alg_values": ["ES256"]}},
                "constraints": {
                    "fields": [
                        {"path": [VCT_PATH], "filter": {"type": "string", "const": CIN_VCT}},
                        {"path": ["$.cin_number"]},
                        {"path": ["$.nom"]},
                        {"path": ["$.prenom"]},
                        {"path": ["$.date_naissance"]},
                    ]
                },
            }
        ],
    }
    return _demo_request("https://demo-admin.gov.tn", definition, **kwargs)


def create_demo_authorization_request_uri(**kwargs) -> str:
    return build_authorization_request_uri(create_demo_bank_request(**kwargs))


def create_demo_cin_authorization_request_uri(**kwargs) -> str:
    return build_authorization_request_uri(create_demo_cin_request(**kwargs))
