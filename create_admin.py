"""
Create (or promote) the platform administrator.

Usage:
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=... python create_admin.py
"""
import os
import sys

from app.database import SessionLocal
from app.models.user import User, UserRole, UserStatus
from app.auth.security import hash_password

email = os.getenv("ADMIN_EMAIL")
password = os.getenv("ADMIN_PASSWORD")
if not email or not password:
    sys.exit("ADMIN_EMAIL and ADMIN_PASSWORD are required")

db = SessionLocal()
try:
    user = db.query(User).filter(User.email == email).first()
    if user:
        user.role = UserRole.ADMIN
        user.status = UserStatus.ACTIVE
        print(f"Promoted existing user: id={user.id}")
    else:
        user = User(
            email=email,
            password_hash=hash_password(password),
            display_name="Administrator",
            role=UserRole.ADMIN,
            status=UserStatus.ACTIVE,
        )
        db.add(user)
        db.flush()
        print(f"Admin created: id={user.id}")
    db.commit()
finally:
    db.close()
