"""Verifier-side checks of an OID4VP authorization response."""
import logging
from typing import Any, Dict, Sequence

from ..keys import DID_JWK_PREFIX, KeyProvider
from ..models import AuthorizationRequest, AuthorizationResponse
from ..oid4vp import VCT_PATH
from ..sd_jwt import SdJwtVc, parse_jwt_unverified, split_sd_jwt

LOGGER = logging.getLogger(__name__)


def resolve_issuer_keys(vp_token: str) -> KeyProvider:
    header, _ = parse_jwt_unverified(split_sd_jwt(vp_token)[0])
    kid = header.get("kid")
    if not kid:
        raise ValueError("VC JWT header missing 'kid'")
    if not kid.startswith(DID_JWK_PREFIX):
        raise ValueError("Unsupported kid format in VC JWT")
    return KeyProvider.from_did_jwk(kid)


def validate_submission(response: AuthorizationResponse, request: AuthorizationRequest):
    definition = request.presentation_definition
    submission = response.presentation_submission
    if submission.definition_id != definition.id:
        raise ValueError(
            f"Submission is for definition '{submission.definition_id}', expected '{definition.id}'"
        )
    expected = [d.id for d in definition.input_descriptors]
    mapped = [m.id for m in submission.descriptor_map]
    if mapped != expected:
        raise ValueError(f"descriptor_map {mapped} does not cover input descriptors {expected}")


def check_vct(claims: Dict[str, Any], request: AuthorizationRequest):
    for descriptor in request.presentation_definition.input_descriptors:
        for constraint in descriptor.constraints.fields:
            vct_filter = constraint.filter if VCT_PATH in constraint.path else None
            if vct_filter and vct_filter.const is not None and claims.get("vct") != vct_filter.const:
                raise ValueError(
                    f"Credential type '{claims.get('vct')}' does not satisfy {descriptor.id}"
                )


async def verify_authorization_response(
    response: AuthorizationResponse,
    request: AuthorizationRequest,
    trusted_issuers: Sequence[str],
) -> Dict[str, Any]:
    """Verify a response against the request it answers and return the disclosed claims."""
    validate_submission(response, request)

    issuer_keys = resolve_issuer_keys(response.vp_token)
    _, payload = parse_jwt_unverified(split_sd_jwt(response.vp_token)[0])
    issuer = payload.get("iss")
    if issuer not in trusted_issuers:
        raise ValueError(f"Untrusted issuer: {issuer}")

    engine = SdJwtVc(issuer_keys, issuer=issuer)
    result = await engine.verify(response.vp_token, nonce=request.nonce, audience=request.client_id)
    if not result.valid:
        raise ValueError(f"Invalid presentation: {result.error}")

    check_vct(result.claims, request)
    LOGGER.info("Verified presentation from issuer %s for %s", issuer, request.client_id)
    return {"issuer": issuer, "claims": result.claims}
