"""
CLI tool to create a staff account for the sync admin endpoints.

Usage:
    python -m stocksync.create_staff_user --email "ops@dealer.co.uk" --password "change-me-please"
    python -m stocksync.create_staff_user --email "ops@dealer.co.uk" --password "..." --name "Forecourt Ops"

Prints an access token for immediate use against /api/v1/sync/trigger.
"""

import argparse

from stocksync.database.db import init_db, SessionLocal
from stocksync.services.auth_service import DuplicateEmailError, create_access_token, create_staff_user


def create_user(email: str, password: str, display_name: str | None = None) -> str | None:
    init_db()
    db = SessionLocal()

    try:
        try:
            user = create_staff_user(email, password, display_name, db)
        except DuplicateEmailError:
            print(f"Error: Staff user with email '{email}' already exists")
            return None

        token = create_access_token(user.id)
        print("Staff user created:")
        print(f"  ID:    {user.id}")
        print(f"  Email: {user.email}")
        print(f"  Name:  {user.display_name or '-'}")
        print()
        print(f"  Access token: {token}")
        return token
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create a StockSync staff user")
    parser.add_argument("--email", required=True, help="Login email (unique)")
    parser.add_argument("--password", required=True, help="Password, at least 8 characters")
    parser.add_argument("--name", default=None, help="Display name")

    args = parser.parse_args()
    if len(args.password) < 8:
        parser.error("--password must be at least 8 characters")
    create_user(args.email, args.password, args.name)


if __name__ == "__main__":
    main()
