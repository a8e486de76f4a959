"""Password hashing (bcrypt) and JWT access tokens (HS256, 24h).

Tokens are stateless: no session store, no revocation list. A leaked token
stays valid until it expires.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from pharmacy_api.core.config import settings

ROLE_USER = "user"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded access-token claims attached to the request by the auth dependencies."""
    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def create_access_token(subject: str, email: str, role: str = ROLE_USER,
                        expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    )
    payload = {"sub": str(subject), "email": email, "role": role, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenClaims]:
    """Return the claims of a valid token, or None if it is malformed, forged or expired."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    role = payload.get("role")
    if sub is None or role not in (ROLE_USER, ROLE_ADMIN):
        return None
    try:
        return TokenClaims(id=int(sub), email=payload.get("email", ""), role=role)
    except ValueError:
        return None
