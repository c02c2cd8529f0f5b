import logging
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .. import config
from ..claims import VCT_BY_KIND, CredentialKind
from ..claims.cin import create_demo_cin_claims
from ..claims.pid import create_demo_pid_claims
from ..errors import SubmissionError
from ..keys import KeyProvider
from ..models import AuthorizationRequest, AuthorizationResponse
from ..sd_jwt import SdJwtVc
from .orchestrator import PresentationSession
from .storage import CredentialStore

logging.basicConfig(level=config.LOG_LEVEL)
LOGGER = logging.getLogger(__name__)

app = FastAPI()

keys = KeyProvider.generate()
engine = SdJwtVc(keys, issuer=config.ISSUER_ID)
store = CredentialStore()

# Outbound transport for direct_post submissions; None uses the network
http_transport: Optional[httpx.AsyncBaseTransport] = None


class AddCredentialRequest(BaseModel):
    raw: str
    claims: Optional[dict] = None


class OpenID4VPRequest(BaseModel):
    uri: str


class ConsentUpdate(BaseModel):
    path: str
    selected: bool


def session_snapshot():
    return {
        "state": session.state.name,
        "consent": session.consent,
        "error": session.error,
        "last_response": session.last_response,
    }


async def submit_response(
    response: AuthorizationResponse,
    response_uri: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict:
    """POST an authorization response to the verifier's response_uri."""
    async with httpx.AsyncClient(transport=transport, timeout=config.HTTP_TIMEOUT) as client:
        try:
            resp = await client.post(response_uri, json=response.model_dump(exclude_none=True))
        except httpx.HTTPError as e:
            raise SubmissionError(f"Failed to reach verifier: {str(e)}") from e
    if resp.status_code != 200:
        raise SubmissionError(f"Verifier rejected presentation {resp.text}")
    return resp.json()


async def post_to_verifier(
    request: AuthorizationRequest, response: AuthorizationResponse
) -> Optional[dict]:
    if request.response_mode != "direct_post" or not request.response_uri:
        return None
    return await submit_response(response, request.response_uri, transport=http_transport)


session = PresentationSession(store, engine, submitter=post_to_verifier)


@app.get("/dids")
def get_did():
    return {"did": keys.did, "public_jwk": keys.public_jwk}


@app.post("/credentials")
def add_credential(req: AddCredentialRequest):
    try:
        stored = store.add(req.raw, req.claims)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to store: {str(e)}")
    return {"status": "stored", "id": stored.id}


@app.get("/credentials")
def get_credentials():
    return [
        {
            "id": c.id,
            "kind": c.kind,
            "vct": c.vct,
            "issuer": c.issuer,
            "issued_at": c.issued_at,
            "expires_at": c.expires_at,
        }
        for c in store.list_credentials()
    ]


@app.delete("/credentials/{credential_id}")
def delete_credential(credential_id: str):
    if not store.remove(credential_id):
        raise HTTPException(status_code=404, detail="Credential not found")
    return {"status": "deleted"}


@app.post("/credentials/demo/{kind}")
async def load_demo_credential(kind: CredentialKind):
    claims = create_demo_cin_claims() if kind is CredentialKind.CIN else create_demo_pid_claims()
    raw = await engine.issue(claims.disclosable(), VCT_BY_KIND[kind])
    stored = store.add(raw, claims.model_dump(exclude_none=True))
    return {"status": "stored", "id": stored.id}


@app.post("/wallet/openid4vp")
def handle_openid4vp(req: OpenID4VPRequest):
    consent = session.handle_authorization_request(req.uri)
    if consent is None:
        raise HTTPException(status_code=400, detail=session.error)
    return consent


@app.post("/wallet/consent")
def update_consent(req: ConsentUpdate):
    if session.consent is None:
        raise HTTPException(status_code=409, detail="No active presentation request")
    return session.update_selected_fields(req.path, req.selected)


@app.post("/wallet/respond")
async def respond():
    response = await session.submit_presentation()
    if response is None:
        status = 502 if isinstance(session.failure, SubmissionError) else 400
        raise HTTPException(status_code=status, detail=session.error)

    result = {"response": response.model_dump(exclude_none=True)}
    if session.verifier_result is not None:
        result["verifier"] = session.verifier_result
    return result


@app.post("/wallet/cancel")
def cancel():
    session.cancel_presentation()
    return session_snapshot()


@app.get("/wallet/session")
def get_session():
    return session_snapshot()
