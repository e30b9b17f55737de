"""Pydantic validation schemas for the auth endpoints."""
import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
SPECIAL_CHARACTERS = re.compile(r'[!@#$%^&*()_+\-=\[\]{};\':"\\|,.<>/?]')

# bcrypt rejects longer input
MAX_PASSWORD_BYTES = 72


def _validate_email(value: str) -> str:
    value = value.strip()
    if not EMAIL_PATTERN.match(value):
        raise ValueError('Formato de email inválido')
    return value


def _validate_strong_password(value: str) -> str:
    # At least 6 characters, one digit and one special character
    if len(value) < 6 or not re.search(r'\d', value) or not SPECIAL_CHARACTERS.search(value):
        raise ValueError(
            'La contraseña debe tener al menos 6 caracteres, incluir al menos '
            'un número y un carácter especial'
        )
    if len(value.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise ValueError(f'La contraseña no puede ocupar más de {MAX_PASSWORD_BYTES} bytes')
    return value


class LoginRequest(BaseModel):
    """Login request schema."""
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class RegisterRequest(BaseModel):
    """Registration request schema."""
    name: str = Field(..., min_length=1, max_length=25)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., max_length=50)
    role: Literal['admin', 'warehouse_manager', 'operator', 'user'] = 'user'

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('El nombre es obligatorio')
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)

    @field_validator('password')
    @classmethod
    def validate_strength(cls, v):
        return _validate_strong_password(v)


class ForgotPasswordRequest(BaseModel):
    """Forgot password request schema."""
    email: str = Field(..., min_length=3, max_length=254)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        return _validate_email(v)


class ResetPasswordRequest(BaseModel):
    """Reset password request schema."""
    token: str = Field(..., min_length=1)
    newPassword: str = Field(..., max_length=50)

    @field_validator('newPassword')
    @classmethod
    def validate_strength(cls, v):
        return _validate_strong_password(v)
