"""Utility script to register a notification recipient in the database."""

from __future__ import annotations

import argparse
import uuid

from sqlalchemy.exc import SQLAlchemyError

from prime_notifications.domain.entities import User
from prime_notifications.infrastructure.database import SessionLocal, initialize_database
from prime_notifications.infrastructure.notifications import PushDeliveryAdapter
from prime_notifications.infrastructure.repositories import UserRepository
from prime_notifications.infrastructure.security import create_access_token


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for user creation."""

    parser = argparse.ArgumentParser(
        description="Register a user that can receive notifications.",
    )
    parser.add_argument(
        "--id",
        default=None,
        help="User identifier (default: a random hex id)",
    )
    parser.add_argument("--name", default="Administrator", help="Display name")
    parser.add_argument("--email", default="admin@example.com", help="Contact email")
    parser.add_argument(
        "--push-token",
        default=None,
        help="Expo push token of the user's device (optional)",
    )
    parser.add_argument(
        "--print-token",
        action="store_true",
        help="Print a bearer token for the new user.",
    )
    return parser.parse_args()


def main() -> None:
    """Create a user using the provided command line arguments."""

    args = parse_args()

    if args.push_token and not PushDeliveryAdapter.is_valid_push_token(args.push_token):
        raise SystemExit(f"Invalid Expo push token: {args.push_token}")

    initialize_database()

    session = SessionLocal()
    try:
        user = UserRepository(session).create(
            User(
                id=args.id or uuid.uuid4().hex,
                name=args.name,
                email=args.email,
                push_token=args.push_token,
            )
        )
    except SQLAlchemyError as exc:
        session.rollback()
        raise SystemExit(f"Could not store the user: {exc}") from exc
    else:
        print(
            "User created:\n"
            f"  ID: {user.id}\n"
            f"  Name: {user.name}\n"
            f"  Email: {user.email}\n"
            f"  Push token: {user.push_token or '-'}"
        )
        if args.print_token:
            print(f"  Access token: {create_access_token({'sub': user.id})}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
