"""FastAPI dependencies: DB session and caller identity from the bearer JWT.

Auth is stateless: the decoded claims are trusted until the token expires,
no database lookup is made per request.
"""
from typing import Generator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from pharmacy_api.db.session import SessionLocal
from pharmacy_api.core.audit import AuditLog
from pharmacy_api.core.exceptions import Forbidden, Unauthorized
from pharmacy_api.core.security import TokenClaims, decode_access_token

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """One session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> TokenClaims:
    """Any valid token, user or admin."""
    if not credentials or not credentials.credentials:
        raise Unauthorized()

    claims = decode_access_token(credentials.credentials)
    if not claims:
        raise Unauthorized("Invalid or expired token")
    return claims


def get_current_admin(
    request: Request,
    claims: TokenClaims = Depends(get_current_user),
) -> TokenClaims:
    if not claims.is_admin:
        AuditLog.log_access_denied(
            action="admin",
            resource_type=request.url.path,
            resource_id=None,
            user_id=claims.id,
            reason="role is not admin",
        )
        raise Forbidden("Admin access required")
    return claims


def get_current_customer(
    request: Request,
    claims: TokenClaims = Depends(get_current_user),
) -> TokenClaims:
    """Customer tokens only. Admin ids live in another table and never name a cart or order owner."""
    if claims.is_admin:
        AuditLog.log_access_denied(
            action="write",
            resource_type=request.url.path,
            resource_id=None,
            user_id=claims.id,
            reason="admin token on customer route",
        )
        raise Forbidden("Customer account required")
    return claims


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
