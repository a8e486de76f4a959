"""
Pharmacy API: catalog, cart, orders, prescriptions and medical records.

ARCHITECTURE:
- Patient mobile app and admin SPA talk to this API over JSON + bearer JWT
- FastAPI routes validate input, services own the business rules
- SQLite DB: source of truth for stock, orders and medical records
- Uploaded files live on local disk and are served from /uploads

CONSISTENCY MODEL:
- Order placement is a single transaction with conditional stock decrements
- Stock can never go negative (conditional UPDATE + CHECK constraint)
- Idempotency-Key header makes order retries safe
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from pharmacy_api.api.routes import admin, admin_medical, auth, cart, drugs, medical, orders, prescriptions
from pharmacy_api.core.config import settings
from pharmacy_api.core.exceptions import (
    PharmacyError,
    http_exception_handler,
    pharmacy_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from pharmacy_api.core.rate_limiter import RateLimitMiddleware
from pharmacy_api.db.init_db import init_db

logger = logging.getLogger(__name__)

# StaticFiles checks the directory when mounted
Path(settings.UPLOAD_DIR, "prescriptions").mkdir(parents=True, exist_ok=True)
Path(settings.UPLOAD_DIR, "medical").mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    1. Initialize database tables (and the bootstrap admin on an empty DB)
    2. Report where uploads are stored
    """
    print("[*] Initializing database...")
    init_db()
    print("[OK] Database initialized")
    print(f"[OK] Uploads stored in {settings.UPLOAD_DIR}")
    print(f"[OK] Environment: {settings.ENVIRONMENT}")

    yield

    print("[*] Shutting down")


app = FastAPI(
    title="Pharmacy API",
    description="Drug catalog, cart and orders with consistent stock, prescriptions and medical records.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(PharmacyError, pharmacy_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# SECURITY: Trust only configured hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# SECURITY: Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "Idempotency-Key",
    ],
    max_age=600,  # Cache preflight for 10 minutes
    expose_headers=["Content-Type"],
)

# SECURITY: Rate limiting to prevent brute force and DoS attacks
app.add_middleware(RateLimitMiddleware)


# SECURITY: Add security headers middleware
@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"  # Prevent MIME sniffing
    response.headers["X-Frame-Options"] = "DENY"  # Prevent clickjacking
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"  # HSTS
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(drugs.router, prefix="/api/drugs", tags=["drugs"])
app.include_router(cart.router, prefix="/api/cart", tags=["cart"])
app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
app.include_router(prescriptions.router, prefix="/api/prescriptions", tags=["prescriptions"])
app.include_router(medical.router, prefix="/api/medical", tags=["medical"])
app.include_router(admin_medical.router, prefix="/api/admin/medical", tags=["admin-medical"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])

app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
