"""Signed, time-bound session tokens.

``TokenService`` mints and verifies HS256 JWTs.  The secret, lifetimes
and clock are handed in at construction so tests can pin all three.
Access and refresh tokens share one secret and one format; the ``type``
claim records which kind was issued and callers decide which kind they
accept.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt

from errors import InvalidToken

ACCESS = "access"
REFRESH = "refresh"
TOKEN_KINDS = (ACCESS, REFRESH)

SCOPE_CLAIMS = ("hospital_id", "pharmacy_id", "region")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: str
    type: str
    issued_at: int
    expires_at: int
    hospital_id: Optional[int] = None
    pharmacy_id: Optional[int] = None
    region: Optional[str] = None


class TokenService:
    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(hours=1),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = utcnow,
    ):
        if not secret_key:
            raise ValueError("A signing secret is required")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], datetime] = utcnow) -> "TokenService":
        return cls(
            settings.secret_key,
            algorithm=settings.algorithm,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
            clock=clock,
        )

    def issue(self, claims: dict, kind: str = ACCESS) -> str:
        """Sign ``claims`` (must hold ``sub`` and ``role``) as a token of ``kind``"""
        if kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {kind}")
        if claims.get("sub") is None or not claims.get("role"):
            raise ValueError("Token claims must include 'sub' and 'role'")

        now = self.clock()
        ttl = self.access_ttl if kind == ACCESS else self.refresh_ttl
        payload = {
            "sub": str(claims["sub"]),
            "role": claims["role"],
            "type": kind,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        for field in SCOPE_CLAIMS:
            if claims.get(field) is not None:
                payload[field] = claims[field]
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def issue_pair(self, claims: dict) -> tuple:
        return self.issue(claims, ACCESS), self.issue(claims, REFRESH)

    def verify(self, token: str) -> TokenClaims:
        """Return the token's claims, or raise ``InvalidToken``.

        Expiry is checked against the injected clock rather than the
        library's own, so ``now >= exp`` is the single rule.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken() from exc

        try:
            claims = TokenClaims(
                user_id=int(payload["sub"]),
                role=str(payload["role"]),
                type=str(payload["type"]),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
                hospital_id=_optional_int(payload.get("hospital_id")),
                pharmacy_id=_optional_int(payload.get("pharmacy_id")),
                region=payload.get("region"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken() from exc

        if claims.type not in TOKEN_KINDS:
            raise InvalidToken()
        if self.clock().timestamp() >= claims.expires_at:
            raise InvalidToken()
        return claims


def _optional_int(value):
    return None if value is None else int(value)
