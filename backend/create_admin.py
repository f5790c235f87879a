"""
Script to promote (or create) an admin user
Run: python backend/create_admin.py --email someone@example.com
"""

import sys
import os
import argparse

# IMPORTANT: Load environment variables FIRST before other imports
from dotenv import load_dotenv
load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database import init_db, SessionLocal, User, UserRole


def create_admin(email=None, name=None, role=UserRole.ADMIN):
    """Give a user the admin role, creating the user when it does not exist yet"""
    init_db()
    db = SessionLocal()

    try:
        email = (email or input("Enter admin email: ")).strip().lower()
        if not email or '@' not in email:
            print("A valid email is required!")
            return False

        existing = db.query(User).filter(User.email == email).first()
        if existing:
            if existing.role == role:
                print(f"User {email} already has role {role}.")
                return True
            existing.role = role
            db.commit()
            print(f"User {email} is now {role}.")
            return True

        # The identity provider link is filled in on the user's first login
        admin_user = User(
            email=email,
            name=name or None,
            role=role
        )
        db.add(admin_user)
        db.commit()

        print("\nAdmin user created successfully!")
        print(f"Email: {email}")
        print(f"Role: {role}")
        print("\nThe account is linked when this person first signs in.")
        return True

    except Exception as e:
        print(f"Error creating admin: {e}")
        db.rollback()
        return False
    finally:
        db.close()


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Promote or create a GameOn admin')
    parser.add_argument('--email', help='Email of the user to promote')
    parser.add_argument('--name', help='Display name when creating a new user')
    parser.add_argument('--role', default=UserRole.ADMIN, choices=UserRole.ALL, help='Role to assign')
    args = parser.parse_args()

    ok = create_admin(args.email, args.name, args.role)
    sys.exit(0 if ok else 1)
