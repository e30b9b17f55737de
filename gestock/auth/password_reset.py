"""Password reset flow: request a link, then consume it."""
import logging
import threading
from datetime import timedelta
from typing import Callable, Optional
from urllib.parse import urlencode

import bcrypt

from gestock.auth.errors import (
    AuthError,
    BadRequestError,
    ConfigurationError,
    ExpiredRegistrationError,
    InactiveUserError,
    PasswordUpdateError,
    ServerConfigurationError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenPurposeError,
    UnauthorizedError,
    UserNotFoundError,
)
from gestock.auth.reset_tokens import (
    DEFAULT_RESET_TTL,
    PASSWORD_RESET_PURPOSE,
    ResetClaims,
    ResetTokenCodec,
)
from gestock.auth.token_registry import TokenRegistry
from gestock.auth.validators import assert_active, assert_exists, assert_user_id_matches

logger = logging.getLogger(__name__)

GENERIC_REQUEST_MESSAGE = 'Si el correo existe, recibirás un enlace de recuperación'
REQUEST_FAILED_MESSAGE = 'Error al procesar la solicitud. Intenta nuevamente.'
RESET_SUCCESS_MESSAGE = 'Contraseña restablecida exitosamente'
RESET_FAILED_MESSAGE = 'Error al restablecer la contraseña. Intenta nuevamente.'
TOKEN_USED_MESSAGE = 'Este enlace ya fue utilizado. Solicita uno nuevo'
TOKEN_EXPIRED_MESSAGE = 'El enlace ha expirado. Solicita uno nuevo'
TOKEN_INVALID_MESSAGE = 'Token inválido'
SERVER_CONFIG_MESSAGE = 'Error de configuración del servidor'

BCRYPT_ROUNDS = 10


def dispatch_in_background(func: Callable, *args):
    """Run ``func`` on a daemon thread without waiting for it."""
    thread = threading.Thread(target=func, args=args, daemon=True, name='EmailDispatch')
    thread.start()


class PasswordResetService:
    """Issue IP-bound reset links and redeem them exactly once.

    Collaborators:
        users: object with ``find_by_email``, ``find_by_id`` and
            ``update_password(user_id, password_hash) -> bool``
        mailer: object with ``send_password_reset_email`` (raises on
            failure) and ``send_password_changed_email`` (best effort)
        codec: signs and verifies the reset tokens
        registry: enforces single use, IP binding and the reset window
    """

    def __init__(self, users, mailer, codec: ResetTokenCodec, registry: TokenRegistry,
                 frontend_url: Optional[str], token_ttl: timedelta = DEFAULT_RESET_TTL,
                 dispatch: Callable = dispatch_in_background):
        self.users = users
        self.mailer = mailer
        self.codec = codec
        self.registry = registry
        self.frontend_url = frontend_url
        self.token_ttl = token_ttl
        self.dispatch = dispatch

    def _reset_url(self, token: str) -> str:
        if not self.frontend_url:
            raise ConfigurationError('Frontend URL is not configured')
        return f"{self.frontend_url.rstrip('/')}/reset-password?{urlencode({'token': token})}"

    def request_password_reset(self, email: str, ip_address: str) -> dict:
        """Email a reset link to ``email`` if it belongs to an active user.

        The response is the same whether or not the account exists. Unexpected
        failures are logged and raised as a generic BadRequestError.
        """
        logger.info(f"Password reset requested for {email} from IP {ip_address}")

        try:
            try:
                user = assert_active(assert_exists(self.users.find_by_email(email)))
            except UserNotFoundError:
                logger.warning(f"Password reset requested for unknown email: {email}")
                return {'message': GENERIC_REQUEST_MESSAGE}
            except InactiveUserError:
                logger.warning(f"Password reset requested for inactive user: {email}")
                return {'message': GENERIC_REQUEST_MESSAGE}

            token = self.codec.issue(
                ResetClaims(user_id=user.id, email=user.email, purpose=PASSWORD_RESET_PURPOSE),
                ttl=self.token_ttl,
            )
            reset_url = self._reset_url(token)
            self.registry.register(token, ip_address)
            self.mailer.send_password_reset_email(user.email, user.name, reset_url)
        except ConfigurationError as e:
            logger.critical(f"Password reset is misconfigured: {e}")
            raise BadRequestError(REQUEST_FAILED_MESSAGE) from e
        except Exception as e:
            logger.error(f"Error processing password reset request for {email}: {e}", exc_info=True)
            raise BadRequestError(REQUEST_FAILED_MESSAGE) from e

        logger.info(f"Password reset email sent to {email}")
        return {'message': GENERIC_REQUEST_MESSAGE}

    def reset_password(self, token: str, new_password: str, ip_address: str) -> dict:
        """Set ``new_password`` for the user ``token`` was issued to.

        Checks run in a fixed order and stop at the first failure: used,
        signature, IP, registration age, purpose, user exists, user id,
        user active. A token is only consumed after the password is stored.
        """
        logger.info(f"Password reset attempt from IP {ip_address}")

        try:
            self.registry.reserve(token)
        except TokenAlreadyUsedError as e:
            logger.warning("Rejected reset: token already used")
            raise UnauthorizedError(TOKEN_USED_MESSAGE) from e

        try:
            user = self._authorize(token, ip_address)
            self._store_password(user, new_password)
            self.registry.mark_used(token)
        except Exception:
            self.registry.release(token)
            raise

        logger.info(f"Password reset completed for {user.email}")

        try:
            self.dispatch(self.mailer.send_password_changed_email, user.email, user.name)
        except Exception as e:
            logger.error(f"Could not dispatch password changed email: {e}")

        return {'message': RESET_SUCCESS_MESSAGE}

    def _authorize(self, token: str, ip_address: str):
        try:
            claims = self.codec.verify(token)
            self.registry.validate_ip(token, ip_address)
            self.registry.validate_age(token)
            if claims.purpose != PASSWORD_RESET_PURPOSE:
                raise TokenPurposeError(f'Unexpected token purpose: {claims.purpose}')

            user = assert_exists(self.users.find_by_email(claims.email))
            assert_user_id_matches(claims.user_id, user.id)
            assert_active(user)
        except ConfigurationError as e:
            logger.critical(f"Password reset is misconfigured: {e}")
            raise ServerConfigurationError(SERVER_CONFIG_MESSAGE) from e
        except (TokenExpiredError, ExpiredRegistrationError) as e:
            logger.warning(f"Rejected reset: {e}")
            raise UnauthorizedError(TOKEN_EXPIRED_MESSAGE) from e
        except AuthError as e:
            logger.warning(f"Rejected reset ({type(e).__name__}): {e}")
            raise UnauthorizedError(TOKEN_INVALID_MESSAGE) from e
        except Exception as e:
            logger.error(f"Error validating reset token: {e}", exc_info=True)
            raise BadRequestError(RESET_FAILED_MESSAGE) from e
        return user

    def _store_password(self, user, new_password: str):
        try:
            password_hash = bcrypt.hashpw(
                new_password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
            ).decode('utf-8')
            if not self.users.update_password(user.id, password_hash):
                raise PasswordUpdateError(f'Password update failed for user {user.id}')
        except Exception as e:
            logger.error(f"Error storing new password for user {user.id}: {e}", exc_info=True)
            raise BadRequestError(RESET_FAILED_MESSAGE) from e
