#!/usr/bin/env python3
"""Create the admin account from ADMIN_EMAIL / ADMIN_PASSWORD (and optional ADMIN_NAME, ADMIN_PHONE, ADMIN_CITY).
Usage: from project root, run:
  python scripts/create_admin.py
"""
import os
import sys

# Project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main():
    from storefront.config import get_settings
    from storefront.database import Base, SessionLocal, engine
    from storefront.models import User  # noqa: F401
    from storefront.services.accounts import seed_admin

    s = get_settings()
    if not s.admin_email or not s.admin_password:
        print("ADMIN_EMAIL and ADMIN_PASSWORD must be set in .env")
        return 1
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = seed_admin(db)
    finally:
        db.close()
    print(f"Admin user ready: email={admin.email} name={admin.name} city={admin.city} role={admin.role.value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
