"""Signed password reset tokens."""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from gestock.auth.errors import (
    ConfigurationError,
    MalformedTokenError,
    PrematureTokenError,
    TokenExpiredError,
)

PASSWORD_RESET_PURPOSE = 'password-reset'
DEFAULT_RESET_TTL = timedelta(minutes=15)

_ALGORITHM = 'HS256'


@dataclass(frozen=True)
class ResetClaims:
    """Identity carried by a reset token."""
    user_id: int
    email: str
    purpose: str = PASSWORD_RESET_PURPOSE
    issued_at: Optional[datetime] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResetTokenCodec:
    """Issue and verify HS256 reset tokens with a dedicated secret."""

    def __init__(self, secret: Optional[str], clock: Callable[[], datetime] = _utcnow):
        self.secret = secret
        self.clock = clock

    def _require_secret(self) -> str:
        if not self.secret:
            raise ConfigurationError('Password reset signing secret is not configured')
        return self.secret

    def issue(self, claims: ResetClaims, ttl: timedelta = DEFAULT_RESET_TTL,
              not_before: Optional[datetime] = None) -> str:
        """Sign ``claims`` into a token that expires ``ttl`` after issuance."""
        secret = self._require_secret()
        now = self.clock()

        payload = {
            'userId': claims.user_id,
            'email': claims.email,
            'purpose': claims.purpose,
            'iat': now,
            'exp': now + ttl,
            'jti': secrets.token_urlsafe(16),
        }
        if not_before is not None:
            payload['nbf'] = not_before

        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> ResetClaims:
        """Verify ``token`` and return its claims.

        Raises TokenExpiredError, PrematureTokenError or MalformedTokenError,
        which callers map to different user-facing messages.
        """
        secret = self._require_secret()
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                options={'require': ['exp', 'iat']},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError('Reset token has expired') from e
        except jwt.ImmatureSignatureError as e:
            raise PrematureTokenError('Reset token is not valid yet') from e
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError(f'Invalid reset token: {e}') from e

        user_id = payload.get('userId')
        email = payload.get('email')
        purpose = payload.get('purpose')
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise MalformedTokenError('Reset token has no valid userId claim')
        if not isinstance(email, str) or not isinstance(purpose, str):
            raise MalformedTokenError('Reset token has no valid email/purpose claims')

        return ResetClaims(
            user_id=user_id,
            email=email,
            purpose=purpose,
            issued_at=datetime.fromtimestamp(payload['iat'], tz=timezone.utc),
        )
