#!/usr/bin/env python
"""Create (or reset the password of) an admin account for development.

Usage:
    python create_admin.py [email] [password]
"""
import secrets
import sys

from pharmacy_api.core.config import settings
from pharmacy_api.core.security import get_password_hash
from pharmacy_api.db.init_db import init_db
from pharmacy_api.db.session import SessionLocal
from pharmacy_api.models.user import Admin


def main():
    email = (sys.argv[1] if len(sys.argv) > 1 else settings.DEFAULT_ADMIN_EMAIL).lower()
    password = sys.argv[2] if len(sys.argv) > 2 else secrets.token_urlsafe(12)

    init_db(create_default_admin=False)
    db = SessionLocal()
    try:
        admins = db.query(Admin).all()
        print(f"\n{'='*60}")
        print(f"Current admins in database: {len(admins)}")
        print(f"{'='*60}")
        for a in admins:
            print(f"  - ID: {a.id} | Email: {a.email}")

        admin = db.query(Admin).filter(Admin.email == email).first()
        if admin:
            admin.password_hash = get_password_hash(password)
            action = "PASSWORD RESET"
        else:
            admin = Admin(email=email, name="Admin User", password_hash=get_password_hash(password), role="admin")
            db.add(admin)
            action = "ADMIN CREATED"
        db.commit()

        print(f"\n{'='*60}")
        print(action)
        print(f"{'='*60}")
        print(f"Email:    {email}")
        print(f"Password: {password}")
        print(f"{'='*60}\n")
    finally:
        db.close()


if __name__ == "__main__":
    main()
