"""Authentication error types.

Internal errors carry the specific reason a check failed and are only ever
logged. Public errors (``ServiceError`` subclasses) carry a safe message and
an HTTP status and are what the routes render.
"""


class AuthError(Exception):
    """Base class for internal authentication failures."""


# Signed token codec

class ConfigurationError(AuthError):
    """A required secret or URL is not configured."""


class TokenExpiredError(AuthError):
    """The token's embedded expiry has elapsed."""


class MalformedTokenError(AuthError):
    """Bad signature, bad structure or missing claims."""


class PrematureTokenError(AuthError):
    """The token is not valid yet (nbf/iat in the future)."""


class TokenPurposeError(AuthError):
    """The token was issued for a different flow."""


# Token registry

class TokenAlreadyUsedError(AuthError):
    """The token was consumed already, or a consume is in flight."""


class IPMismatchError(AuthError):
    """The token is unknown to the registry or was issued to another IP."""


class ExpiredRegistrationError(AuthError):
    """The registry entry is older than the reset window."""


# Identity validators

class UserNotFoundError(AuthError):
    pass


class InactiveUserError(AuthError):
    pass


class UserIdMismatchError(AuthError):
    pass


class InvalidCredentialsError(AuthError):
    pass


class PasswordUpdateError(AuthError):
    """The new password could not be hashed or stored."""


# Public errors

class ServiceError(Exception):
    """Error that is safe to return to the client."""

    status_code = 400
    code = 'bad_request'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class BadRequestError(ServiceError):
    status_code = 400
    code = 'bad_request'


class UnauthorizedError(ServiceError):
    status_code = 401
    code = 'unauthorized'


class ServerConfigurationError(ServiceError):
    status_code = 500
    code = 'internal_error'


class ConflictError(ServiceError):
    status_code = 409
    code = 'conflict'
