"""Tests for OID4VP request parsing, matching and responses."""

import pytest

from tanitid.claims import CIN_VCT, PID_VCT, CredentialKind
from tanitid.errors import ParseError
from tanitid.models import StoredCredential
from tanitid.oid4vp import (
    build_authorization_request_uri,
    build_authorization_response,
    create_demo_authorization_request_uri,
    create_demo_bank_request,
    create_demo_cin_authorization_request_uri,
    extract_requested_fields,
    match_credentials,
    parse_authorization_request,
)

from .conftest import request_uri

DEFINITION = {
    "id": "test-pd",
    "purpose": "Test",
    "input_descriptors": [
        {
            "id": "pid",
            "constraints": {
                "fields": [
                    {"path": ["$.vct"], "filter": {"type": "string", "const": PID_VCT}},
                    {"path": ["$.family_name"]},
                    {"path": ["$.given_name"]},
                ]
            },
        }
    ],
}


def credential(id, vct=PID_VCT, kind=CredentialKind.PID, **claims):
    return StoredCredential(
        id=id,
        raw="h.p.s~",
        vct=vct,
        kind=kind,
        claims=claims,
        issued_at="",
        expires_at="",
        issuer="https://issuer.example.com",
    )


def test_parse_request():
    uri = request_uri(
        DEFINITION,
        response_type="vp_token",
        client_id="https://verifier.example.com",
        nonce="abc123",
    )
    request = parse_authorization_request(uri)
    assert request.response_type == "vp_token"
    assert request.client_id == "https://verifier.example.com"
    assert request.nonce == "abc123"
    assert request.presentation_definition.id == "test-pd"
    assert request.presentation_definition.input_descriptors[0].id == "pid"
    assert request.state is None
    assert request.response_mode is None


def test_parse_request_optional_parameters():
    uri = request_uri(
        DEFINITION,
        response_type="vp_token",
        client_id="https://verifier.example.com",
        nonce="abc123",
        state="s-1",
        response_mode="direct_post",
        response_uri="https://verifier.example.com/callback",
        client_id_scheme="redirect_uri",
    )
    request = parse_authorization_request(uri)
    assert request.state == "s-1"
    assert request.response_mode == "direct_post"
    assert request.response_uri == "https://verifier.example.com/callback"
    assert request.client_id_scheme == "redirect_uri"


@pytest.mark.parametrize(
    "params, parameter",
    [
        ({"response_type": "id_token", "client_id": "c", "nonce": "n"}, "response_type"),
        ({"client_id": "c", "nonce": "n"}, "response_type"),
        ({"response_type": "vp_token", "nonce": "n"}, "client_id"),
        ({"response_type": "vp_token", "client_id": "c"}, "nonce"),
    ],
)
def test_parse_request_missing_parameter(params, parameter):
    with pytest.raises(ParseError) as exc:
        parse_authorization_request(request_uri(DEFINITION, **params))
    assert exc.value.parameter == parameter


def test_parse_request_wrong_response_type_message():
    uri = request_uri(DEFINITION, response_type="id_token", client_id="c", nonce="n")
    with pytest.raises(ParseError, match="Unsupported response_type: id_token"):
        parse_authorization_request(uri)


def test_parse_request_missing_presentation_definition():
    with pytest.raises(ParseError) as exc:
        parse_authorization_request("openid4vp://?response_type=vp_token&client_id=c&nonce=n")
    assert exc.value.parameter == "presentation_definition"


def test_parse_request_invalid_json():
    uri = "openid4vp://?response_type=vp_token&client_id=c&nonce=n&presentation_definition=%7Bnope"
    with pytest.raises(ParseError, match="not valid JSON"):
        parse_authorization_request(uri)


def test_parse_request_invalid_definition_shape():
    uri = request_uri({"input_descriptors": "x"}, response_type="vp_token", client_id="c", nonce="n")
    with pytest.raises(ParseError) as exc:
        parse_authorization_request(uri)
    assert exc.value.parameter == "presentation_definition"


def test_build_request_uri_round_trip():
    request = create_demo_bank_request(nonce="n-1", state="s-1", response_uri="https://v/cb")
    uri = build_authorization_request_uri(request)
    assert uri.startswith("openid4vp://?")
    assert parse_authorization_request(uri).model_dump() == request.model_dump()


def test_demo_uris_parse():
    bank = parse_authorization_request(create_demo_authorization_request_uri())
    assert bank.client_id == "https://demo-bank.example.com"
    assert bank.presentation_definition.id == "demo-bank-kyc-1"
    assert bank.response_mode == "direct_post"
    assert bank.state.startswith("session-")

    cin = parse_authorization_request(create_demo_cin_authorization_request_uri())
    assert cin.client_id == "https://demo-admin.gov.tn"
    paths = [f.path for f in extract_requested_fields(cin)]
    assert paths == ["cin_number", "nom", "prenom", "date_naissance"]


def test_demo_requests_use_fresh_nonces():
    assert create_demo_bank_request().nonce != create_demo_bank_request().nonce


def test_match_by_vct():
    request = parse_authorization_request(
        request_uri(DEFINITION, response_type="vp_token", client_id="c", nonce="n")
    )
    pid = credential("pid-1", given_name="Ali")
    cin = credential("cin-1", vct=CIN_VCT, kind=CredentialKind.CIN, family_name="Ben Salah")
    # The vct filter decides alone; missing fields do not matter
    assert match_credentials(request, [pid, cin]) == [pid]


def test_match_by_fields_without_vct_filter():
    definition = {
        "id": "fields-only",
        "input_descriptors": [
            {"id": "d", "constraints": {"fields": [{"path": ["$.family_name"]}]}}
        ],
    }
    request = parse_authorization_request(
        request_uri(definition, response_type="vp_token", client_id="c", nonce="n")
    )
    with_name = credential("a", family_name="Ben Salah")
    without = credential("b", given_name="Ali")
    assert match_credentials(request, [with_name, without]) == [with_name]


def test_match_deduplicates_across_descriptors():
    descriptor = DEFINITION["input_descriptors"][0]
    definition = dict(DEFINITION, input_descriptors=[descriptor, dict(descriptor, id="pid-2")])
    request = parse_authorization_request(
        request_uri(definition, response_type="vp_token", client_id="c", nonce="n")
    )
    pid = credential("pid-1")
    assert match_credentials(request, [pid]) == [pid]


def test_match_skips_other_formats():
    descriptor = dict(DEFINITION["input_descriptors"][0], format={"jwt_vc_json": {}})
    definition = dict(DEFINITION, input_descriptors=[descriptor])
    request = parse_authorization_request(
        request_uri(definition, response_type="vp_token", client_id="c", nonce="n")
    )
    assert match_credentials(request, [credential("pid-1")]) == []


def test_extract_requested_fields():
    definition = {
        "id": "x",
        "input_descriptors": [
            {
                "id": "a",
                "constraints": {
                    "fields": [
                        {"path": ["$.vct"], "filter": {"const": PID_VCT}},
                        {"path": ["$.family_name"]},
                        {"path": ["$.age_over_18"], "filter": {"type": "boolean", "const": True}},
                    ]
                },
            },
            {"id": "b", "constraints": {"fields": [{"path": ["$.family_name", "$.iss"]}]}},
        ],
    }
    request = parse_authorization_request(
        request_uri(definition, response_type="vp_token", client_id="c", nonce="n")
    )
    fields = extract_requested_fields(request)
    assert [(f.path, f.required) for f in fields] == [
        ("family_name", False),
        ("age_over_18", True),
    ]


def test_build_response():
    request = create_demo_bank_request(state="s-1")
    response = build_authorization_response(request, "h.p.s~d~")
    assert response.vp_token == "h.p.s~d~"
    assert response.state == "s-1"
    submission = response.presentation_submission
    assert submission.id.startswith("ps-")
    assert submission.definition_id == "demo-bank-kyc-1"
    assert len(submission.descriptor_map) == 1
    assert submission.descriptor_map[0].id == "eu-pid-basic"
    assert submission.descriptor_map[0].format == "vc+sd-jwt"
    assert submission.descriptor_map[0].path == "$"


def test_match_unrelated_vct():
    descriptor = DEFINITION["input_descriptors"][0]
    fields = [{"path": ["$.vct"], "filter": {"const": "org.example.membership"}}]
    definition = dict(
        DEFINITION, input_descriptors=[dict(descriptor, constraints={"fields": fields})]
    )
    request = parse_authorization_request(
        request_uri(definition, response_type="vp_token", client_id="c", nonce="n")
    )
    assert match_credentials(request, [credential("pid-1", family_name="Ben Salah")]) == []


def test_match_skips_empty_format():
    descriptor = dict(DEFINITION["input_descriptors"][0], format={})
    definition = dict(DEFINITION, input_descriptors=[descriptor])
    request = parse_authorization_request(
        request_uri(definition, response_type="vp_token", client_id="c", nonce="n")
    )
    assert match_credentials(request, [credential("pid-1")]) == []


def test_match_empty_vct_const_falls_back_to_fields():
    fields = [{"path": ["$.vct", "$.family_name"], "filter": {"type": "string", "const": ""}}]
    definition = dict(
        DEFINITION,
        input_descriptors=[dict(DEFINITION["input_descriptors"][0], constraints={"fields": fields})],
    )
    request = parse_authorization_request(
        request_uri(definition, response_type="vp_token", client_id="c", nonce="n")
    )
    with_name = credential("a", family_name="Ben Salah")
    without = credential("b", given_name="Ali")
    assert match_credentials(request, [with_name, without]) == [with_name]
