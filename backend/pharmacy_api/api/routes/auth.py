"""Auth: register and login for customers, login for admins.

SECURITY FEATURES:
- Password hashing with bcrypt
- Password strength validation
- 24h bearer tokens carrying a role claim (user / admin)
- Generic login failure message to prevent account enumeration
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_api.api.deps import client_ip, get_current_user, get_db
from pharmacy_api.core.audit import AuditLog
from pharmacy_api.core.config import settings
from pharmacy_api.core.exceptions import Conflict, NotFound, Unauthorized, ValidationFailed
from pharmacy_api.core.security import (
    ROLE_ADMIN,
    ROLE_USER,
    TokenClaims,
    create_access_token,
    get_password_hash,
    verify_password,
)
from pharmacy_api.models.user import Admin, User
from pharmacy_api.schemas.user import AccountResponse, AdminToken, Token, UserCreate, UserLogin

router = APIRouter()


def _check_password_strength(password: str) -> None:
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    if settings.REQUIRE_NUMBERS and not any(c.isdigit() for c in password):
        raise ValidationFailed("Password must contain at least one number")


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(data: UserCreate, request: Request, db: Session = Depends(get_db)):
    """
    Register a customer account and return a token, so the app can log in straight away.

    Password requirements:
    - Minimum 8 characters
    - At least one number
    """
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        AuditLog.log_authentication("register", email, client_ip(request), False, reason="email taken")
        raise Conflict("Email already registered")

    _check_password_strength(data.password)

    user = User(
        email=email,
        password_hash=get_password_hash(data.password),
        name=data.name,
        phone=data.phone,
        address=data.address,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Email already registered")
    db.refresh(user)

    AuditLog.log_authentication("register", email, client_ip(request), True)
    token = create_access_token(subject=str(user.id), email=user.email, role=ROLE_USER)
    return Token(
        message="User registered successfully",
        token=token,
        user=AccountResponse(id=user.id, email=user.email, name=user.name, role=ROLE_USER),
    )


@router.post("/login", response_model=Token)
def login(data: UserLogin, request: Request, db: Session = Depends(get_db)):
    email = data.email.lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(data.password, user.password_hash):
        AuditLog.log_authentication("login", email, client_ip(request), False, reason="bad credentials")
        # Generic error: don't specify which field is wrong
        raise Unauthorized("Invalid email or password")

    AuditLog.log_authentication("login", email, client_ip(request), True)
    token = create_access_token(subject=str(user.id), email=user.email, role=ROLE_USER)
    return Token(
        message="Login successful",
        token=token,
        user=AccountResponse(id=user.id, email=user.email, name=user.name, role=ROLE_USER),
    )


@router.post("/admin/login", response_model=AdminToken)
def admin_login(data: UserLogin, request: Request, db: Session = Depends(get_db)):
    email = data.email.lower()
    admin = db.query(Admin).filter(Admin.email == email).first()
    if not admin or not verify_password(data.password, admin.password_hash):
        AuditLog.log_authentication("admin_login", email, client_ip(request), False, reason="bad credentials")
        raise Unauthorized("Invalid email or password")

    AuditLog.log_authentication("admin_login", email, client_ip(request), True)
    token = create_access_token(subject=str(admin.id), email=admin.email, role=ROLE_ADMIN)
    return AdminToken(
        message="Admin login successful",
        token=token,
        admin=AccountResponse(id=admin.id, email=admin.email, name=admin.name, role=ROLE_ADMIN),
    )


@router.get("/me", response_model=AccountResponse)
def me(db: Session = Depends(get_db), claims: TokenClaims = Depends(get_current_user)):
    """Account behind the current token."""
    model = Admin if claims.is_admin else User
    account = db.query(model).filter(model.id == claims.id).first()
    if not account:
        raise NotFound("Account not found")
    return AccountResponse(id=account.id, email=account.email, name=account.name, role=claims.role)
