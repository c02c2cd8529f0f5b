from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .claims import CredentialKind

SD_JWT_FORMAT = "vc+sd-jwt"


class StoredCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # UUID
    raw: str
    vct: str
    kind: CredentialKind
    claims: Dict[str, Any]
    issued_at: str
    expires_at: str
    issuer: str


class FieldFilter(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    const: Optional[Any] = None


class FieldConstraint(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: List[str]
    filter: Optional[FieldFilter] = None


class Constraints(BaseModel):
    model_config = ConfigDict(extra="allow")

    fields: List[FieldConstraint] = Field(default_factory=list)


class InputDescriptor(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    purpose: Optional[str] = None
    format: Optional[Dict[str, Any]] = None
    constraints: Constraints = Field(default_factory=Constraints)


class PresentationDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    purpose: Optional[str] = None
    input_descriptors: List[InputDescriptor] = Field(default_factory=list)


class AuthorizationRequest(BaseModel):
    response_type: str = "vp_token"
    client_id: str
    nonce: str
    presentation_definition: PresentationDefinition
    client_id_scheme: Optional[str] = None
    response_mode: Optional[str] = None
    response_uri: Optional[str] = None
    redirect_uri: Optional[str] = None
    state: Optional[str] = None


class DescriptorMap(BaseModel):
    id: str
    format: str = SD_JWT_FORMAT
    path: str = "$"


class PresentationSubmission(BaseModel):
    id: str
    definition_id: str
    descriptor_map: List[DescriptorMap]


class AuthorizationResponse(BaseModel):
    vp_token: str
    presentation_submission: PresentationSubmission
    state: Optional[str] = None


class RequestedField(BaseModel):
    path: str
    required: bool


class ConsentField(RequestedField):
    label: str
    selected: bool = True


class PresentationConsent(BaseModel):
    verifier_name: str
    verifier_purpose: Optional[str] = None
    requested_fields: List[ConsentField]
