"""Holder presentation session.

States::

    Idle -> RequestReceived -> Matched -> Approving -> Completed
    any state -> Idle on deny / cancel, parse failure or no matching credential

A failure while approving, including the verifier refusing the submitted
response, falls back to Matched with the same request and consent so the
holder can retry.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..claims import field_labels
from ..errors import NoMatchError, ParseError
from ..models import (
    AuthorizationRequest,
    AuthorizationResponse,
    ConsentField,
    PresentationConsent,
    StoredCredential,
)
from ..oid4vp import (
    build_authorization_response,
    extract_requested_fields,
    match_credentials,
    parse_authorization_request,
)
from ..sd_jwt import SdJwtVc
from .storage import CredentialStore

LOGGER = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "No matching credentials found. Load a PID credential first."


@dataclass(frozen=True)
class Idle:
    name = "idle"


@dataclass(frozen=True)
class RequestReceived:
    request: AuthorizationRequest
    name = "request_received"


@dataclass(frozen=True)
class Matched:
    request: AuthorizationRequest
    credential: StoredCredential
    consent: PresentationConsent
    name = "matched"


@dataclass(frozen=True)
class Approving:
    request: AuthorizationRequest
    credential: StoredCredential
    consent: PresentationConsent
    name = "approving"


@dataclass(frozen=True)
class Completed:
    response: AuthorizationResponse
    verifier_result: Optional[Dict[str, Any]] = None
    name = "completed"


SessionState = Union[Idle, RequestReceived, Matched, Approving, Completed]

# Delivers a response to the verifier; returns its reply, if any
Submitter = Callable[
    [AuthorizationRequest, AuthorizationResponse], Awaitable[Optional[Dict[str, Any]]]
]


def build_consent(request: AuthorizationRequest, credential: StoredCredential) -> PresentationConsent:
    labels = field_labels(credential.kind)
    return PresentationConsent(
        verifier_name=request.client_id,
        verifier_purpose=request.presentation_definition.purpose,
        requested_fields=[
            ConsentField(
                path=f.path,
                label=labels.get(f.path, f.path),
                required=f.required,
                selected=True,
            )
            for f in extract_requested_fields(request)
        ],
    )


class PresentationSession:
    """Drives one holder through an OID4VP presentation.

    Errors never escape the session; they land in ``error`` for the UI and the
    exception itself in ``failure``. A ``submitter`` delivers the approved
    response to the verifier before the session completes.
    """

    def __init__(
        self,
        store: CredentialStore,
        engine: SdJwtVc,
        submitter: Optional[Submitter] = None,
    ):
        self.store = store
        self.engine = engine
        self.submitter = submitter
        self.state: SessionState = Idle()
        self.error: Optional[str] = None
        self.failure: Optional[Exception] = None

    @property
    def current_request(self) -> Optional[AuthorizationRequest]:
        return getattr(self.state, "request", None)

    @property
    def consent(self) -> Optional[PresentationConsent]:
        return getattr(self.state, "consent", None)

    @property
    def matched_credential(self) -> Optional[StoredCredential]:
        return getattr(self.state, "credential", None)

    @property
    def last_response(self) -> Optional[AuthorizationResponse]:
        return getattr(self.state, "response", None)

    @property
    def verifier_result(self) -> Optional[Dict[str, Any]]:
        return getattr(self.state, "verifier_result", None)

    @property
    def is_processing(self) -> bool:
        return isinstance(self.state, Approving)

    def clear_error(self):
        self.error = None
        self.failure = None

    def _fail(self, message: str):
        LOGGER.info("Presentation request rejected: %s", message)
        self.error = message
        self.state = Idle()

    def handle_authorization_request(self, uri: str) -> Optional[PresentationConsent]:
        """Parse and match a request; returns the consent to show, or None on error."""
        self.clear_error()
        self.state = Idle()
        try:
            request = parse_authorization_request(uri)
        except ParseError as e:
            self._fail(f"Invalid request: {e}")
            return None
        self.state = RequestReceived(request)

        try:
            matched = match_credentials(request, self.store.list_credentials())
            if not matched:
                raise NoMatchError(NO_MATCH_MESSAGE)
        except NoMatchError as e:
            self._fail(str(e))
            return None

        # First match wins; there is no credential picker
        credential = matched[0]
        consent = build_consent(request, credential)
        self.state = Matched(request, credential, consent)
        LOGGER.info(
            "Matched credential %s for %s (%d candidates)",
            credential.id,
            request.client_id,
            len(matched),
        )
        return consent

    def update_selected_fields(self, path: str, selected: bool) -> Optional[PresentationConsent]:
        """Toggle a consent field. Required fields stay selected."""
        if not isinstance(self.state, Matched):
            return self.consent
        consent = self.state.consent
        fields = [
            f.model_copy(update={"selected": selected})
            if f.path == path and not f.required
            else f
            for f in consent.requested_fields
        ]
        consent = consent.model_copy(update={"requested_fields": fields})
        self.state = Matched(self.state.request, self.state.credential, consent)
        return consent

    async def submit_presentation(self) -> Optional[AuthorizationResponse]:
        if not isinstance(self.state, Matched):
            self.error = "No active presentation request"
            return None

        matched = self.state
        approving = Approving(matched.request, matched.credential, matched.consent)
        self.state = approving
        self.clear_error()
        selected_fields = [f.path for f in matched.consent.requested_fields if f.selected]

        try:
            vp_token = await self.engine.present(
                matched.credential.raw,
                selected_fields,
                matched.request.nonce,
                matched.request.client_id,
            )
            response = build_authorization_response(matched.request, vp_token)
            verifier_result = None
            if self.submitter is not None:
                verifier_result = await self.submitter(matched.request, response)
        except Exception as e:
            LOGGER.error("Presentation failed: %s", e, exc_info=True)
            if self.state is approving:
                self.state = matched
                self.error = f"Presentation failed: {e}"
                self.failure = e
            return None

        if self.state is not approving:
            LOGGER.info("Session moved on while presenting; discarding presentation")
            return None
        self.state = Completed(response, verifier_result)
        LOGGER.info("Presented %d fields to %s", len(selected_fields), matched.request.client_id)
        return response

    def cancel_presentation(self):
        """Deny or cancel: drop all transient state, including a completed response."""
        self.state = Idle()

    deny_presentation = cancel_presentation
