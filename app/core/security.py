from __future__ import annotations

from calendar import timegm
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.clock import Clock, utc_now
from app.core.config import Settings
from app.core.errors import TokenExpiredError, TokenInvalidError

ACCESS_TOKEN_TYPE = 'access'
REFRESH_TOKEN_TYPE = 'refresh'

pwd_context = CryptContext(schemes=['bcrypt'], deprecated='auto')


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(password, hashed_password)
    except ValueError:
        # unknown or corrupt hash format
        return False


class TokenCodec:
    """Signs and verifies bearer tokens with a single shared secret.

    Expiry is evaluated against the injected clock rather than the wall clock
    so that callers (and tests) control what "now" means. Verification fails
    closed: anything other than a well-signed, well-formed token of the
    expected type is reported as ``TokenInvalidError``. Only a token that
    passes every other check but whose ``exp`` has passed is reported as
    ``TokenExpiredError``.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        algorithm: str = 'HS256',
        access_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=30),
        clock: Clock = utc_now,
    ) -> None:
        if not secret_key:
            raise ValueError('secret_key must not be empty')
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, config: Settings, clock: Clock = utc_now) -> 'TokenCodec':
        return cls(
            config.SECRET_KEY,
            algorithm=config.ALGORITHM,
            access_ttl=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(minutes=config.REFRESH_TOKEN_EXPIRE_MINUTES),
            clock=clock,
        )

    def now(self) -> datetime:
        return self._clock()

    def issue(self, claims: dict[str, Any], ttl: timedelta) -> tuple[str, datetime]:
        now = self._clock()
        expires_at = now + ttl
        payload = dict(claims)
        payload['iat'] = now
        payload['exp'] = expires_at
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm), expires_at

    def issue_access_token(
        self, user_id: int, email: str, roles: Sequence[str]
    ) -> tuple[str, datetime]:
        claims = {
            'sub': str(user_id),
            'email': email,
            'roles': list(roles),
            'type': ACCESS_TOKEN_TYPE,
        }
        return self.issue(claims, self.access_ttl)

    def issue_refresh_token(self, user_id: int) -> tuple[str, datetime]:
        return self.issue({'sub': str(user_id), 'type': REFRESH_TOKEN_TYPE}, self.refresh_ttl)

    def verify(self, token: str, expected_type: Optional[str] = None) -> dict[str, Any]:
        payload = self._decode(token, expected_type)
        if payload['exp'] <= timegm(self._clock().utctimetuple()):
            raise TokenExpiredError()
        return payload

    def decode_subject_ignoring_expiry(
        self, token: str, expected_type: Optional[str] = ACCESS_TOKEN_TYPE
    ) -> int:
        """Return the subject of a correctly signed token even if it has expired.

        This only identifies whose stored credentials to look at. It must never
        be used to authorize anything.
        """
        return subject_id(self._decode(token, expected_type))

    def _decode(self, token: str, expected_type: Optional[str]) -> dict[str, Any]:
        if not token or not isinstance(token, str):
            raise TokenInvalidError()
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={'verify_exp': False, 'verify_nbf': False},
            )
        except JWTError as exc:
            raise TokenInvalidError() from exc
        if not isinstance(payload.get('exp'), int):
            raise TokenInvalidError()
        subject_id(payload)
        if expected_type is not None and payload.get('type') != expected_type:
            raise TokenInvalidError('invalid token type')
        return payload


def subject_id(claims: dict[str, Any]) -> int:
    raw = claims.get('sub')
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise TokenInvalidError() from exc
