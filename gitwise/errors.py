from enum import Enum


class GitWiseError(Exception):
    pass


class ValidationError(GitWiseError):
    """Caller input is malformed. Raised before any side effect."""


class InvalidUrlError(ValidationError):
    pass


class NotFoundError(GitWiseError):
    pass


class PersistenceError(GitWiseError):
    pass


class ConfigurationError(GitWiseError):
    pass


class FetchClassification(str, Enum):
    RATE_LIMITED = "RateLimited"
    NOT_FOUND = "NotFound"
    AUTH_FAILED = "AuthFailed"
    NETWORK_ERROR = "NetworkError"
    UPSTREAM_OTHER = "UpstreamOther"


class UpstreamFetchError(GitWiseError):
    """Metadata collection failed; nothing was persisted."""

    def __init__(self, classification: FetchClassification, message: str):
        super().__init__(message)
        self.classification = classification


class NotAnalyzedError(NotFoundError):
    pass


class ChatError(GitWiseError):
    pass


class AuthError(ChatError):
    pass


class QuotaExceededError(ChatError):
    pass


class ChatTimeoutError(ChatError, TimeoutError):
    pass
