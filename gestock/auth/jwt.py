"""Access tokens for logged-in users."""
import jwt
import datetime
from typing import Optional, Dict, Any

from gestock.auth.errors import ConfigurationError


class JWTManager:
    """JWT access token manager."""

    def __init__(self, secret: Optional[str], expiration_hours: int = 24):
        self.secret = secret
        self.expiration_hours = expiration_hours

    def create_token(self, user) -> Dict[str, Any]:
        """Create an access token for a user record.

        Raises ConfigurationError when no secret is configured.
        """
        if not self.secret:
            raise ConfigurationError('Access token secret is not configured')

        now = datetime.datetime.now(datetime.timezone.utc)
        expires_at = now + datetime.timedelta(hours=self.expiration_hours)

        payload = {
            'sub': str(user.id),
            'email': user.email,
            'name': user.name,
            'role': user.role,
            'iat': now,
            'exp': expires_at
        }

        token = jwt.encode(payload, self.secret, algorithm='HS256')

        return {
            'token': token,
            'expiresAt': expires_at.strftime('%Y-%m-%dT%H:%M:%SZ')
        }

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify and decode an access token, None if invalid or expired."""
        if not self.secret:
            return None
        try:
            return jwt.decode(token, self.secret, algorithms=['HS256'])
        except jwt.InvalidTokenError:
            return None

    def get_user_id_from_token(self, token: str) -> Optional[int]:
        payload = self.verify_token(token)
        if not payload:
            return None
        try:
            return int(payload.get('sub'))
        except (TypeError, ValueError):
            return None
