"""
Ownership checks for user-scoped resources.
Trust: a user sees only their own orders and prescriptions; admins see all.
"""
from pharmacy_api.core.security import TokenClaims


def can_access_user_records(claims: TokenClaims, owner_id: int) -> bool:
    """Verify that the authenticated caller owns the records of owner_id, or is an admin."""
    return claims.is_admin or claims.id == owner_id
