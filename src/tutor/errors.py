from __future__ import annotations

from google.genai import errors as genai_errors


class TutorError(Exception):
    """Base class for every error the tutoring engine raises."""


class ServiceError(TutorError):
    kind = "transient"


class ConfigurationError(ServiceError):
    """The reasoning service cannot be used at all (missing or rejected credentials)."""

    kind = "configuration"


class RateLimitedError(ServiceError):
    kind = "rate_limited"


class TransientError(ServiceError):
    """Network or server hiccup; the student may resubmit immediately."""

    kind = "transient"


class InvalidPayloadError(TransientError):
    pass


class ValidationCallError(TutorError):
    def __init__(self, message: str, *, cause: ServiceError | None = None):
        super().__init__(message)
        self.cause = cause


class TranscriptionError(TutorError):
    pass


class TransitionRejected(TutorError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


_CONFIGURATION_CODES = {401, 403}


def classify_api_error(exc: Exception) -> ServiceError:
    if isinstance(exc, ServiceError):
        return exc
    if isinstance(exc, genai_errors.APIError):
        code = getattr(exc, "code", None)
        message = getattr(exc, "message", None) or str(exc)
        if code == 429:
            return RateLimitedError(message)
        if code in _CONFIGURATION_CODES:
            return ConfigurationError(message)
        return TransientError(message)
    return TransientError(str(exc) or exc.__class__.__name__)
