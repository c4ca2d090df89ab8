"""
Error taxonomy for generation requests.

Vendor errors are classified once, at the client boundary, into a tagged
GenerationError. Retry and fallback logic switch on the tag only.
"""

from enum import Enum, auto
from typing import List, Optional, Tuple

# Message fragments the vendor uses when a daily/monthly quota is spent
QUOTA_MESSAGE_PATTERNS = (
    "exceeded your current quota",
    "quota exceeded",
    "freetier",
)
QUOTA_ERROR_CODES = {"insufficient_quota"}
QUOTA_FAILURE_DETAIL = "google.rpc.quotafailure"


class ErrorKind(Enum):
    """Classification of a failed generation call."""
    RATE_LIMITED = auto()     # Transient, retry after a delay
    QUOTA_EXHAUSTED = auto()  # Terminal for this model, try the next one
    OTHER = auto()            # Terminal, propagate


class GenerationError(Exception):
    """Base class for failures surfaced by the generation layer."""
    kind = ErrorKind.OTHER

    def __init__(self, message: str, status: Optional[int] = None, model: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.model = model


class RateLimitedError(GenerationError):
    """The API asked us to slow down (HTTP 429)."""
    kind = ErrorKind.RATE_LIMITED


class QuotaExhaustedError(GenerationError):
    """The model's request quota for the period is spent."""
    kind = ErrorKind.QUOTA_EXHAUSTED


class UpstreamError(GenerationError):
    """Any other failure from the generation API."""
    kind = ErrorKind.OTHER


class AllModelsExhaustedError(GenerationError):
    """Every candidate model reported quota exhaustion."""
    kind = ErrorKind.QUOTA_EXHAUSTED

    def __init__(self, message: str, failures: List[Tuple[str, str]]):
        super().__init__(message, status=429)
        self.failures = failures


class MalformedAIResponseError(GenerationError):
    """The model returned text that does not have the expected structure."""
    kind = ErrorKind.OTHER

    def __init__(self, message: str, feature: str, raw_text: str, model: Optional[str] = None):
        super().__init__(message, status=500, model=model)
        self.feature = feature
        self.raw_text = raw_text


def _is_quota_failure(message: str, code: Optional[str], body: object) -> bool:
    if code and code.lower() in QUOTA_ERROR_CODES:
        return True
    lowered = message.lower()
    if any(pattern in lowered for pattern in QUOTA_MESSAGE_PATTERNS):
        return True
    return body is not None and QUOTA_FAILURE_DETAIL in str(body).lower()


def classify_error(exc: BaseException, model: Optional[str] = None) -> GenerationError:
    """Translate an arbitrary API failure into a tagged GenerationError.

    Quota exhaustion is checked before rate limiting because vendors report
    both with HTTP 429.

    Args:
        exc: Exception raised by the API client
        model: Model the call was made against

    Returns:
        A GenerationError subclass instance; ``exc`` itself if already tagged
    """
    if isinstance(exc, GenerationError):
        return exc

    message = str(exc)
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    code = getattr(exc, "code", None)
    body = getattr(exc, "body", None)

    if _is_quota_failure(message, code if isinstance(code, str) else None, body):
        return QuotaExhaustedError(message, status=status, model=model)
    if status == 429 or "too many requests" in message.lower():
        return RateLimitedError(message, status=status, model=model)
    return UpstreamError(message, status=status, model=model)
