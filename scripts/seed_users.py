"""Seed a handful of demo users so the discovery feed has something to show.

Idempotent by email: existing rows are left untouched.
Usage: python -m scripts.seed_users [--password demo1234]
"""
import argparse
import asyncio
from datetime import date

from sqlalchemy import select

from app.config import get_settings
from app.database import Database
from app.models import User
from app.utils.security import PasswordManager


DEMO_USERS = [
    {
        "email": "alice@example.com",
        "first_name": "Alice",
        "last_name": "Martin",
        "genre": "female",
        "dob": date(1994, 3, 12),
        "preference": "male",
        "interests": ["climbing", "jazz"],
    },
    {
        "email": "bob@example.com",
        "first_name": "Bob",
        "last_name": "Durand",
        "genre": "male",
        "dob": date(1991, 7, 2),
        "preference": "female",
        "interests": ["cooking", "cinema"],
    },
    {
        "email": "chloe@example.com",
        "first_name": "Chloe",
        "last_name": "Bernard",
        "genre": "female",
        "dob": date(1997, 11, 23),
        "preference": "all",
        "interests": ["running"],
    },
    {
        "email": "david@example.com",
        "first_name": "David",
        "last_name": "Petit",
        "genre": "male",
        "dob": date(1989, 1, 30),
        "preference": "all",
        "interests": ["board games", "hiking"],
    },
]


async def seed(password: str):
    settings = get_settings()
    database = Database.from_settings(settings)
    passwords = PasswordManager(settings)

    try:
        async with database.session() as session:
            for u in DEMO_USERS:
                existing = await session.execute(
                    select(User.id).where(User.email == u["email"])
                )
                if existing.scalar_one_or_none() is None:
                    session.add(User(password_hash=passwords.hash_password(password), **u))
                    print(f"  Seeded user {u['email']} ({u['genre']}, likes {u['preference']})")
                else:
                    print(f"  User {u['email']} already exists, skipping.")
    finally:
        await database.dispose()
    print("Done seeding users.")


def main():
    parser = argparse.ArgumentParser(description="Seed demo users")
    parser.add_argument("--password", type=str, default="demo1234", help="Password for every demo user")
    args = parser.parse_args()
    asyncio.run(seed(args.password))


if __name__ == "__main__":
    main()
