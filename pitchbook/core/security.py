from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import secrets
from typing import Any, Callable, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from ..config import Settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
ALGORITHM = "HS256"

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


class TokenError(Exception):
    pass


class TokenExpired(TokenError):
    pass


class TokenInvalid(TokenError):
    pass


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "bearer"


class TokenAuthority:
    """Issues and verifies access and refresh JWTs.

    Each token class has its own signing secret, so a leaked refresh secret
    cannot be used to mint access tokens and vice versa. Verification only
    needs the token, the secret and the current time; there is no
    server-side session store.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        *,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not access_secret or not refresh_secret:
            raise ValueError("Both access and refresh secrets are required")
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh secrets must differ")
        if not timedelta(0) < access_ttl < refresh_ttl:
            raise ValueError("Access token lifetime must be positive and shorter than refresh lifetime")
        self._secrets = {ACCESS_TOKEN: access_secret, REFRESH_TOKEN: refresh_secret}
        self._ttls = {ACCESS_TOKEN: access_ttl, REFRESH_TOKEN: refresh_ttl}
        self._clock = clock or _utc_now

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "TokenAuthority":
        return cls(
            settings.jwt_secret,
            settings.jwt_refresh_secret,
            access_ttl=timedelta(minutes=settings.access_token_expire_min),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
            **kwargs,
        )

    @property
    def access_ttl(self) -> timedelta:
        return self._ttls[ACCESS_TOKEN]

    @property
    def refresh_ttl(self) -> timedelta:
        return self._ttls[REFRESH_TOKEN]

    def _issue(self, user_id: int | str, token_type: str) -> tuple[str, datetime]:
        issued_at = self._clock()
        expire = issued_at + self._ttls[token_type]
        to_encode: Dict[str, Any] = {
            "sub": str(user_id),
            "type": token_type,
            "iat": int(issued_at.timestamp()),
            # fractional NumericDate, so the token lives for the full lifetime
            "exp": expire.timestamp(),
            "jti": secrets.token_hex(16),
        }
        token = jwt.encode(to_encode, self._secrets[token_type], algorithm=ALGORITHM)
        return token, expire

    def _verify(self, token: str, token_type: str) -> str:
        try:
            # exp is checked against our own clock below
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise TokenInvalid("Could not validate token") from exc
        if payload.get("type") != token_type:
            raise TokenInvalid("Wrong token type")
        subject = payload.get("sub")
        expires = payload.get("exp")
        if not subject or not isinstance(expires, (int, float)):
            raise TokenInvalid("Malformed token claims")
        if self._clock().timestamp() >= expires:
            raise TokenExpired("Token has expired")
        return subject

    def issue_access_token(self, user_id: int | str) -> str:
        return self._issue(user_id, ACCESS_TOKEN)[0]

    def issue_refresh_token(self, user_id: int | str) -> str:
        return self._issue(user_id, REFRESH_TOKEN)[0]

    def issue_pair(self, user_id: int | str) -> TokenPair:
        access_token, access_expires_at = self._issue(user_id, ACCESS_TOKEN)
        refresh_token, refresh_expires_at = self._issue(user_id, REFRESH_TOKEN)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def verify_access_token(self, token: str) -> str:
        return self._verify(token, ACCESS_TOKEN)

    def verify_refresh_token(self, token: str) -> str:
        return self._verify(token, REFRESH_TOKEN)
