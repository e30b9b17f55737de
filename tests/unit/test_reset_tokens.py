"""Unit tests for signed password reset tokens."""
import pytest
import jwt
from datetime import datetime, timedelta, timezone
from gestock.auth.errors import (
    ConfigurationError,
    MalformedTokenError,
    PrematureTokenError,
    TokenExpiredError,
)
from gestock.auth.reset_tokens import PASSWORD_RESET_PURPOSE, ResetClaims, ResetTokenCodec


SECRET = "reset-secret"


def _claims():
    return ResetClaims(user_id=7, email="user@x.com")


def test_issue_and_verify():
    """Test that verify returns the claims that were issued."""
    codec = ResetTokenCodec(SECRET)
    token = codec.issue(_claims(), ttl=timedelta(minutes=15))

    claims = codec.verify(token)
    assert claims.user_id == 7
    assert claims.email == "user@x.com"
    assert claims.purpose == PASSWORD_RESET_PURPOSE
    assert claims.issued_at is not None


def test_tokens_are_unique():
    """Two tokens for the same user in the same instant must differ."""
    fixed = datetime(2026, 1, 1, tzinfo=timezone.utc)
    codec = ResetTokenCodec(SECRET, clock=lambda: fixed)
    assert codec.issue(_claims()) != codec.issue(_claims())


def test_expired_token():
    """Test that an elapsed embedded expiry is reported as expired."""
    issued = datetime.now(timezone.utc) - timedelta(minutes=20)
    codec = ResetTokenCodec(SECRET, clock=lambda: issued)
    token = codec.issue(_claims(), ttl=timedelta(minutes=15))

    with pytest.raises(TokenExpiredError):
        ResetTokenCodec(SECRET).verify(token)


def test_premature_token():
    """Test that a future not-before claim is reported as premature."""
    codec = ResetTokenCodec(SECRET)
    token = codec.issue(_claims(), not_before=datetime.now(timezone.utc) + timedelta(minutes=10))

    with pytest.raises(PrematureTokenError):
        codec.verify(token)


def test_tampered_token():
    """Test that a modified token fails signature verification."""
    codec = ResetTokenCodec(SECRET)
    token = codec.issue(_claims())
    header, payload, signature = token.split('.')
    tampered = '.'.join([header, payload, signature[:-2] + ('AA' if signature[-2:] != 'AA' else 'BB')])

    with pytest.raises(MalformedTokenError):
        codec.verify(tampered)


def test_token_signed_with_other_secret():
    token = ResetTokenCodec("other-secret").issue(_claims())
    with pytest.raises(MalformedTokenError):
        ResetTokenCodec(SECRET).verify(token)


def test_garbage_token():
    with pytest.raises(MalformedTokenError):
        ResetTokenCodec(SECRET).verify("not-a-token")


def test_missing_identity_claims():
    """Test that a correctly signed token without userId is malformed."""
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {'email': 'user@x.com', 'purpose': PASSWORD_RESET_PURPOSE, 'iat': now, 'exp': now + timedelta(minutes=5)},
        SECRET,
        algorithm='HS256',
    )
    with pytest.raises(MalformedTokenError):
        ResetTokenCodec(SECRET).verify(token)


def test_missing_expiry_claim():
    token = jwt.encode(
        {'userId': 7, 'email': 'user@x.com', 'purpose': PASSWORD_RESET_PURPOSE,
         'iat': datetime.now(timezone.utc)},
        SECRET,
        algorithm='HS256',
    )
    with pytest.raises(MalformedTokenError):
        ResetTokenCodec(SECRET).verify(token)


def test_other_purpose_is_preserved():
    """The codec reports the purpose; rejecting it is the caller's job."""
    codec = ResetTokenCodec(SECRET)
    token = codec.issue(ResetClaims(user_id=7, email="user@x.com", purpose="email-verification"))
    assert codec.verify(token).purpose == "email-verification"


@pytest.mark.parametrize("secret", [None, ""])
def test_missing_secret(secret):
    """Test that no token is issued or accepted without a secret."""
    codec = ResetTokenCodec(secret)
    with pytest.raises(ConfigurationError):
        codec.issue(_claims())
    with pytest.raises(ConfigurationError):
        codec.verify("anything")
