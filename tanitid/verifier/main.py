import logging
import uuid
from enum import Enum
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from starlette.requests import Request

from .. import config
from ..errors import TanitIdError
from ..models import AuthorizationRequest, AuthorizationResponse, PresentationDefinition
from ..oid4vp import (
    build_authorization_request_uri,
    create_demo_bank_request,
    create_demo_cin_request,
)
from .verify import verify_authorization_response

logging.basicConfig(level=config.LOG_LEVEL)
LOGGER = logging.getLogger(__name__)

app = FastAPI()

# In memory, keyed by state
presentation_requests: Dict[str, AuthorizationRequest] = {}
presentation_results: Dict[str, dict] = {}


class DemoPurpose(str, Enum):
    BANK = "bank"
    CIN = "cin"


class InitiateRequest(BaseModel):
    presentation_definition: PresentationDefinition
    client_id: Optional[str] = None


def remember(request: AuthorizationRequest) -> dict:
    presentation_requests[request.state] = request
    return {
        "authorization_request_uri": build_authorization_request_uri(request),
        "state": request.state,
        "nonce": request.nonce,
    }


@app.post("/openid4vp/initiate")
def initiate_vp(request: Request, req: InitiateRequest):
    callback = str(request.url_for("openid4vp_callback"))
    return remember(
        AuthorizationRequest(
            client_id=req.client_id or str(request.base_url).rstrip("/"),
            nonce=str(uuid.uuid4()),
            state=str(uuid.uuid4()),
            response_mode="direct_post",
            response_uri=callback,
            presentation_definition=req.presentation_definition,
        )
    )


@app.get("/openid4vp/demo/{purpose}")
def demo_request(request: Request, purpose: DemoPurpose):
    callback = str(request.url_for("openid4vp_callback"))
    factory = create_demo_cin_request if purpose is DemoPurpose.CIN else create_demo_bank_request
    return remember(factory(state=str(uuid.uuid4()), response_uri=callback))


@app.post("/openid4vp/callback")
async def openid4vp_callback(response: AuthorizationResponse):
    # Single use: a state is consumed whether or not verification succeeds
    pending = presentation_requests.pop(response.state, None) if response.state else None
    if pending is None:
        raise HTTPException(status_code=404, detail="Request not found")

    try:
        result = await verify_authorization_response(response, pending, config.TRUSTED_ISSUERS)
    except (ValueError, TanitIdError) as e:
        LOGGER.warning("Rejected presentation for state %s: %s", response.state, e)
        raise HTTPException(status_code=400, detail=str(e))

    presentation_results[response.state] = result
    return {"status": "valid", **result}


@app.get("/openid4vp/result/{state}")
def get_result(state: str):
    if state not in presentation_results:
        raise HTTPException(status_code=404, detail="Result not found")
    return presentation_results[state]
