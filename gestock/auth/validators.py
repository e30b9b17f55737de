"""Identity assertions shared by the login and password reset flows.

Each helper raises a named error instead of returning a boolean so a failed
check cannot be ignored by accident.
"""
import bcrypt

from gestock.auth.errors import (
    InactiveUserError,
    InvalidCredentialsError,
    UserIdMismatchError,
    UserNotFoundError,
)


def assert_exists(user):
    """Raise UserNotFoundError if ``user`` is None."""
    if user is None:
        raise UserNotFoundError('User not found')
    return user


def assert_active(user):
    if not user.is_active:
        raise InactiveUserError(f'User {user.id} is inactive or suspended')
    return user


def assert_user_id_matches(token_user_id: int, user_id: int):
    """Check the user id carried by a token against the stored record."""
    if token_user_id != user_id:
        raise UserIdMismatchError(f'Token user id {token_user_id} does not match stored user id {user_id}')


def assert_password_matches(plain_password: str, password_hash: str):
    try:
        valid = bcrypt.checkpw(plain_password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError as e:
        raise InvalidCredentialsError('Stored password hash is invalid') from e
    if not valid:
        raise InvalidCredentialsError('Password does not match')
