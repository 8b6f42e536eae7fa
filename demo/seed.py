#!/usr/bin/env python3
"""
Demo seed script - populates a running API with sample users and transfers.

!! NOT FOR PRODUCTION !!
This script creates users with opening point balances and a handful of
transfers between them. It is intended ONLY for local demos.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database (then restart the server):
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000
"""

import argparse
import asyncio
import os
import random

import httpx

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

USERS = [
    {"first_name": "Ava", "last_name": "Kim", "phone": "0810000001",
     "email": "ava.kim@example.com", "membership_level": "Gold", "points": "25.00"},
    {"first_name": "Ben", "last_name": "Ito", "phone": "0810000002",
     "email": "ben.ito@example.com", "membership_level": "Silver", "points": "12.50"},
    {"first_name": "Cal", "last_name": "Roy", "phone": "0810000003",
     "email": "cal.roy@example.com", "membership_level": "Bronze", "points": "4.00"},
    {"first_name": "Dee", "last_name": "Ng", "phone": "0810000004",
     "email": "dee.ng@example.com", "membership_level": "Platinum", "points": "60.00"},
]

NOTES = ["Lunch", "Coffee", "Birthday", "Thanks!", "Movie night", None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


async def create_user(client: httpx.AsyncClient, user: dict) -> int:
    resp = await client.post("/users", json=user)
    resp.raise_for_status()
    return resp.json()["id"]


async def transfer(client: httpx.AsyncClient, from_id: int, to_id: int,
                   amount: str, note: str | None) -> dict:
    """POST a transfer; returns the JSON body (a transfer envelope or an error)."""
    body = {"fromUserId": from_id, "toUserId": to_id, "amount": amount}
    if note:
        body["note"] = note
    resp = await client.post("/transfers", json=body)
    return resp.json()


def random_amount() -> str:
    # 0.05 .. 2.00 in steps of 0.05
    cents = random.randint(1, 40) * 5
    return f"{cents // 100}.{cents % 100:02d}"


# ---------------------------------------------------------------------------
# Seed
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        health = await client.get("/health")
        health.raise_for_status()

        print("\nCreating users...")
        ids = {}
        for user in USERS:
            ids[user["first_name"]] = await create_user(client, user)
            log(f"{user['first_name']} {user['last_name']}: {user['points']} points")

        print("\nCreating transfers...")
        names = list(ids)
        last_receiver = {}
        for _ in range(12):
            sender = random.choice(names)
            candidates = [n for n in names if n != sender and n != last_receiver.get(sender)]
            receiver = random.choice(candidates)
            amount = random_amount()
            result = await transfer(
                client, ids[sender], ids[receiver], amount, random.choice(NOTES)
            )
            if "transfer" in result:
                last_receiver[sender] = receiver
                log(f"{sender} -> {receiver}: {amount} ({result['transfer']['idemKey']})")
            else:
                log(f"{sender} -> {receiver}: {amount} rejected ({result.get('error_type')})")

        print("\nBalances:")
        for name, user_id in ids.items():
            resp = await client.get(f"/users/{user_id}")
            log(f"{name}: {resp.json()['points']}")
        print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "points.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script - NOT FOR PRODUCTION",
        epilog="Creates sample users and point transfers for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
