"""Fixtures for wallet tests."""

import json
from urllib.parse import quote

import pytest

from tanitid.claims import CIN_VCT, PID_VCT
from tanitid.claims.cin import create_demo_cin_claims
from tanitid.claims.pid import create_demo_pid_claims
from tanitid.holder.storage import CredentialStore
from tanitid.keys import KeyProvider
from tanitid.sd_jwt import SdJwtVc

ISSUER = "https://demo.zktanit.id/issuer"


def request_uri(presentation_definition, **params) -> str:
    """Build an openid4vp:// URI with the given query parameters."""
    query = "&".join(f"{k}={quote(str(v), safe=':/')}" for k, v in params.items())
    pd = quote(json.dumps(presentation_definition))
    return f"openid4vp://?{query}&presentation_definition={pd}"


@pytest.fixture
def keys():
    return KeyProvider.generate()


@pytest.fixture
def engine(keys):
    return SdJwtVc(keys, issuer=ISSUER)


@pytest.fixture
async def pid_credential(engine):
    return await engine.issue(create_demo_pid_claims().disclosable(), PID_VCT)


@pytest.fixture
async def cin_credential(engine):
    return await engine.issue(create_demo_cin_claims().disclosable(), CIN_VCT)


@pytest.fixture
def store():
    return CredentialStore()


@pytest.fixture
def stored_pid(store, pid_credential):
    return store.add(pid_credential, create_demo_pid_claims().model_dump(exclude_none=True))


@pytest.fixture
def stored_cin(store, cin_credential):
    return store.add(cin_credential, create_demo_cin_claims().model_dump())
