import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ValidationError

from .. import config
from ..claims import CIN_VCT, PID_VCT, VCT_BY_KIND, CredentialKind
from ..claims.cin import CinClaims, create_demo_cin_claims, validate_cin_claims
from ..claims.pid import (
    NicRecord,
    PidClaims,
    create_demo_pid_claims,
    map_tunisia_nic_to_pid,
    validate_pid_claims,
)
from ..errors import CryptoError
from ..keys import KeyProvider
from ..sd_jwt import SdJwtVc

logging.basicConfig(level=config.LOG_LEVEL)
LOGGER = logging.getLogger(__name__)

app = FastAPI()

issuer_keys = KeyProvider.generate()


class IssueRequest(BaseModel):
    claims: dict
    holder_jwk: Optional[dict] = None


class NicIssueRequest(BaseModel):
    nic: NicRecord
    holder_jwk: Optional[dict] = None


def issuer_for(holder_jwk: Optional[dict]) -> SdJwtVc:
    holder_keys = None
    if holder_jwk:
        try:
            holder_keys = KeyProvider.from_jwk(holder_jwk)
        except CryptoError as e:
            raise HTTPException(status_code=400, detail=f"Invalid holder_jwk: {str(e)}")
    return SdJwtVc(
        issuer_keys,
        issuer=config.ISSUER_ID,
        holder_keys=holder_keys,
        validity=config.CREDENTIAL_VALIDITY_DAYS * 24 * 60 * 60,
    )


async def issue(claims, vct: str, holder_jwk: Optional[dict] = None):
    sd_jwt = await issuer_for(holder_jwk).issue(claims.disclosable(), vct)
    return {
        "sd_jwt": sd_jwt,
        "kid": issuer_keys.did,
        "vct": vct,
    }


@app.post("/issue/pid")
async def issue_pid(req: IssueRequest):
    validation = validate_pid_claims(req.claims)
    if not validation["valid"]:
        raise HTTPException(status_code=400, detail={"missing_fields": validation["missing_fields"]})
    try:
        claims = PidClaims.model_validate(req.claims)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid PID claims: {str(e)}")
    return await issue(claims, PID_VCT, req.holder_jwk)


@app.post("/issue/cin")
async def issue_cin(req: IssueRequest):
    validation = validate_cin_claims(req.claims)
    if not validation["valid"]:
        raise HTTPException(status_code=400, detail={"missing_fields": validation["missing_fields"]})
    try:
        claims = CinClaims.model_validate(req.claims)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid CIN claims: {str(e)}")
    return await issue(claims, CIN_VCT, req.holder_jwk)


@app.post("/issue/nic")
async def issue_nic(req: NicIssueRequest):
    try:
        claims = map_tunisia_nic_to_pid(req.nic)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid NIC record: {str(e)}")
    return await issue(claims, PID_VCT, req.holder_jwk)


@app.get("/issue/demo/{kind}")
async def issue_demo(kind: CredentialKind):
    claims = create_demo_cin_claims() if kind is CredentialKind.CIN else create_demo_pid_claims()
    return await issue(claims, VCT_BY_KIND[kind])
