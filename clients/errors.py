"""Errors raised by the token client."""
import enum
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    """The three ways a token request can fail."""

    SERVICE_ACCOUNT_ERROR = "service_account_error"
    TOKEN_ERROR = "token_error"
    ENVIRONMENT_ERROR = "environment_error"


class AuthError(Exception):
    """Base class for token client failures.

    Attributes:
        kind: The ErrorKind of the failure.
        cause: The exception raised by google-auth, if any.
    """

    kind: ErrorKind
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None, cause: BaseException | None = None):
        self.cause = cause
        if message is None:
            message = self.default_message
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message)


class ServiceAccountError(AuthError):
    """The service account key file could not be loaded."""

    kind = ErrorKind.SERVICE_ACCOUNT_ERROR
    default_message = "Could not load service account credentials"


class TokenError(AuthError):
    """Credentials were loaded but no access token could be issued."""

    kind = ErrorKind.TOKEN_ERROR
    default_message = "Could not obtain an access token"


class EnvironmentCredentialsError(AuthError):
    """No usable credentials were found in the environment."""

    kind = ErrorKind.ENVIRONMENT_ERROR
    default_message = "Could not find credentials in the environment"


_ERRORS_BY_KIND = {
    ErrorKind.SERVICE_ACCOUNT_ERROR: ServiceAccountError,
    ErrorKind.TOKEN_ERROR: TokenError,
    ErrorKind.ENVIRONMENT_ERROR: EnvironmentCredentialsError,
}


def error_for(kind: ErrorKind, cause: BaseException | None = None) -> AuthError:
    """Builds the AuthError subclass instance for a kind."""
    return _ERRORS_BY_KIND[kind](cause=cause)


@contextmanager
def translate_errors(kind: ErrorKind):
    """Re-raises any google-auth failure inside the block as ``kind``.

    AuthErrors raised inside the block are left alone.
    """
    try:
        yield
    except AuthError:
        raise
    except Exception as e:
        logger.debug(f"Translating {type(e).__name__} to {kind.value}: {e}")
        raise error_for(kind, cause=e) from e
