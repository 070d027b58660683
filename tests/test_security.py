from datetime import timedelta

import pytest

from app.core.errors import TokenExpiredError, TokenInvalidError
from app.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    TokenCodec,
    hash_password,
    verify_password,
)


def test_access_token_carries_identity_and_roles(codec, clock):
    token, expires_at = codec.issue_access_token(7, 'a@x.com', ['user', 'admin'])

    claims = codec.verify(token, expected_type=ACCESS_TOKEN_TYPE)

    assert claims['sub'] == '7'
    assert claims['email'] == 'a@x.com'
    assert claims['roles'] == ['user', 'admin']
    assert claims['type'] == ACCESS_TOKEN_TYPE
    assert expires_at == clock() + timedelta(minutes=1)


def test_refresh_token_only_carries_subject(codec):
    token, _ = codec.issue_refresh_token(7)

    claims = codec.verify(token, expected_type=REFRESH_TOKEN_TYPE)

    assert set(claims) == {'sub', 'type', 'iat', 'exp'}


def test_short_ttl_access_token_expires(codec, clock):
    token, _ = codec.issue_access_token(7, 'a@x.com', ['user'])
    clock.advance(seconds=59)
    assert codec.verify(token)['sub'] == '7'

    clock.advance(seconds=2)
    with pytest.raises(TokenExpiredError) as exc_info:
        codec.verify(token)
    assert exc_info.value.kind == 'EXPIRED'


def test_day_long_ttl_access_token_expires(clock):
    codec = TokenCodec('test-secret', access_ttl=timedelta(hours=24), clock=clock)
    token, _ = codec.issue_access_token(7, 'a@x.com', ['user'])

    clock.advance(hours=23)
    codec.verify(token)
    clock.advance(hours=2)
    with pytest.raises(TokenExpiredError):
        codec.verify(token)


def test_foreign_signature_is_invalid(codec, clock):
    other = TokenCodec('another-secret', access_ttl=timedelta(minutes=1), clock=clock)
    token, _ = other.issue_access_token(7, 'a@x.com', ['user'])

    with pytest.raises(TokenInvalidError) as exc_info:
        codec.verify(token)
    assert exc_info.value.kind == 'INVALID'


def test_expired_token_with_foreign_signature_is_invalid_not_expired(codec, clock):
    other = TokenCodec('another-secret', access_ttl=timedelta(minutes=1), clock=clock)
    token, _ = other.issue_access_token(7, 'a@x.com', ['user'])
    clock.advance(minutes=5)

    with pytest.raises(TokenInvalidError):
        codec.verify(token)
    with pytest.raises(TokenInvalidError):
        codec.decode_subject_ignoring_expiry(token)


def test_spliced_payload_is_invalid(codec):
    victim, _ = codec.issue_access_token(7, 'a@x.com', ['user'])
    attacker, _ = codec.issue_access_token(8, 'b@x.com', ['admin'])
    header, _, signature = victim.split('.')
    _, payload, _ = attacker.split('.')

    with pytest.raises(TokenInvalidError):
        codec.verify(f"{header}.{payload}.{signature}")


@pytest.mark.parametrize('token', ['', 'not-a-token', 'a.b.c', 'Bearer xyz'])
def test_malformed_tokens_are_invalid(codec, token):
    with pytest.raises(TokenInvalidError):
        codec.verify(token)


def test_token_type_is_enforced(codec):
    refresh_token, _ = codec.issue_refresh_token(7)
    access_token, _ = codec.issue_access_token(7, 'a@x.com', ['user'])

    with pytest.raises(TokenInvalidError):
        codec.verify(refresh_token, expected_type=ACCESS_TOKEN_TYPE)
    with pytest.raises(TokenInvalidError):
        codec.verify(access_token, expected_type=REFRESH_TOKEN_TYPE)


def test_decode_subject_ignoring_expiry_reads_expired_token(codec, clock):
    token, _ = codec.issue_access_token(42, 'a@x.com', ['user'])
    clock.advance(days=3)

    with pytest.raises(TokenExpiredError):
        codec.verify(token)
    assert codec.decode_subject_ignoring_expiry(token) == 42


def test_codec_requires_secret():
    with pytest.raises(ValueError):
        TokenCodec('')


def test_password_hashing():
    hashed = hash_password('secret123')
    assert hashed != 'secret123'
    assert verify_password('secret123', hashed)
    assert not verify_password('secret124', hashed)
    assert not verify_password('secret123', 'not-a-bcrypt-hash')
