"""Error kinds raised by the wallet core."""
from typing import Optional


class TanitIdError(Exception):
    """Base class for wallet errors."""


class ParseError(TanitIdError):
    """Raised when an authorization request is malformed or incomplete."""

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message)
        self.parameter = parameter


class NoMatchError(TanitIdError):
    """Raised when no held credential satisfies a request."""


class CryptoError(TanitIdError):
    """Raised when a hash, signature or digest operation fails."""


class PresentationError(TanitIdError):
    """Raised while deriving or submitting a presentation."""


class SubmissionError(PresentationError):
    """Raised when the verifier cannot be reached or rejects a presentation."""
