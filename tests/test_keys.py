"""Tests for the ES256 key provider."""

import pytest
from jwcrypto import jwk

from tanitid.errors import CryptoError
from tanitid.keys import DID_JWK_PREFIX, KeyProvider, sha256_digest


@pytest.mark.asyncio
async def test_sign_and_verify(keys):
    signature = await keys.sign("header.payload")
    assert await keys.verify("header.payload", signature)
    assert not await keys.verify("header.payload2", signature)


@pytest.mark.asyncio
async def test_verify_rejects_garbage(keys):
    assert not await keys.verify("data", "not-a-signature")
    assert not await keys.verify("data", "")


@pytest.mark.asyncio
async def test_verify_with_other_key_fails(keys):
    signature = await keys.sign("data")
    assert not await KeyProvider.generate().verify("data", signature)


@pytest.mark.asyncio
async def test_hash_is_base64url_sha256(keys):
    expected = "47DEQpj8HBSa-_TImW-5JCeuQeRkm5NMpJWZG3hSuFU"
    assert await keys.hash("") == expected
    assert sha256_digest("") == expected


@pytest.mark.asyncio
async def test_did_jwk_round_trip(keys):
    assert keys.did.startswith(DID_JWK_PREFIX)
    public = KeyProvider.from_did_jwk(keys.did)
    assert not public.has_private
    assert public.public_jwk == keys.public_jwk
    assert await public.verify("data", await keys.sign("data"))


@pytest.mark.asyncio
async def test_public_key_cannot_sign(keys):
    public = KeyProvider.from_jwk(keys.public_jwk)
    with pytest.raises(CryptoError):
        await public.sign("data")


def test_public_jwk_has_no_private_part(keys):
    assert keys.public_jwk["kty"] == "EC"
    assert keys.public_jwk["crv"] == "P-256"
    assert "d" not in keys.public_jwk


def test_rejects_other_curves():
    with pytest.raises(CryptoError):
        KeyProvider(jwk.JWK.generate(kty="EC", crv="P-384"))
    with pytest.raises(CryptoError):
        KeyProvider(jwk.JWK.generate(kty="OKP", crv="Ed25519"))
    with pytest.raises(CryptoError):
        KeyProvider.from_jwk({"kty": "oct", "k": "c2VjcmV0"})


def test_rejects_bad_did():
    with pytest.raises(CryptoError):
        KeyProvider.from_did_jwk("did:key:z6Mk")
    with pytest.raises(CryptoError):
        KeyProvider.from_did_jwk("did:jwk:!!!")
