#!/usr/bin/env python3
"""
seed_intents.py — Put a few demo intents on the map of a local database.

Usage (from the repository root):
    python scripts/seed_intents.py           # insert demo rows (idempotent)
    python scripts/seed_intents.py --clear   # remove demo rows first, then insert

Prerequisites:
    • DATABASE_URL env var set (or .env file present)
    • The platform schema already migrated (intents, users, categories, tags)
    • PostGIS enabled: CREATE EXTENSION IF NOT EXISTS postgis;

Every row this script writes has an id starting with "seed_", so --clear
only ever deletes its own data.

What this script creates
────────────────────────
  users    ← one verified demo owner
  intents  ← clustered around Warsaw (shared venue), Kraków and London,
             one of them boosted, one canceled
  indexes  ← GiST index on intents.geom (used by ST_Intersects)
"""

import argparse
import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import asyncpg
from dotenv import load_dotenv

ROOT = Path(__file__).parent.parent
load_dotenv(ROOT / ".env")

DATABASE_URL = os.environ.get("DATABASE_URL", "")

if not DATABASE_URL:
    print("ERROR: DATABASE_URL not set. Add it to .env")
    sys.exit(1)

_SEED_PREFIX = "seed_"
_OWNER_ID = "seed_owner"

# ── Seed intents ──────────────────────────────────────────────────────────────
# Columns: id suffix, title, lng, lat, start offset (days), meeting kind, levels,
#          boosted, canceled
_RAW = [
    ("waw_1", "Morning run, Pole Mokotowskie",  21.0122, 52.2297,  2, "ONSITE", ["BEGINNER"],                 True,  False),
    ("waw_2", "Padel doubles",                  21.0122, 52.2297,  3, "ONSITE", ["INTERMEDIATE"],             False, False),
    ("waw_3", "Board games night",              21.0150, 52.2300,  1, "HYBRID", ["BEGINNER", "INTERMEDIATE"], False, False),
    ("waw_4", "Chess in the park",              21.0100, 52.2290,  5, "ONSITE", ["ADVANCED"],                 False, True),
    ("krk_1", "Vistula bike ride",              19.9450, 50.0647,  4, "ONSITE", ["INTERMEDIATE"],             False, False),
    ("krk_2", "Climbing wall intro",            19.9370, 50.0614,  6, "ONSITE", ["BEGINNER"],                 False, False),
    ("lon_1", "Thames photo walk",              -0.1276, 51.5074,  7, "ONSITE", ["BEGINNER"],                 False, False),
    ("lon_2", "Remote book club",               -0.1276, 51.5074,  2, "ONLINE", ["BEGINNER"],                 False, False),
]


async def create_indexes(conn: asyncpg.Connection) -> None:
    """Idempotent index creation — safe to run multiple times."""
    print("  Creating indexes…")
    await conn.execute("CREATE INDEX IF NOT EXISTS intents_geom_gist ON intents USING GIST (geom)")
    print("  Indexes OK")


async def clear(conn: asyncpg.Connection) -> None:
    deleted = await conn.execute("DELETE FROM intents WHERE id LIKE $1", _SEED_PREFIX + "%")
    await conn.execute("DELETE FROM users WHERE id = $1", _OWNER_ID)
    print(f"  {deleted}")


async def seed(clear_first: bool = False) -> None:
    try:
        conn = await asyncpg.connect(DATABASE_URL)
    except (OSError, asyncpg.PostgresError) as exc:
        print(f"ERROR: Cannot connect to Postgres: {exc}")
        return

    now = datetime.now(tz=timezone.utc)
    try:
        async with conn.transaction():
            if clear_first:
                print("\nClearing existing seed rows…")
                await clear(conn)

            print("\nInserting demo owner…")
            await conn.execute(
                """
                INSERT INTO users (id, email, name, "verifiedAt", "createdAt", "updatedAt")
                VALUES ($1, $2, $3, $4, $4, $4)
                ON CONFLICT (id) DO NOTHING
                """,
                _OWNER_ID, "seed-owner@example.com", "Seed Owner", now,
            )

            print("Inserting intents…")
            for suffix, title, lng, lat, days, kind, levels, boosted, canceled in _RAW:
                start = now + timedelta(days=days)
                await conn.execute(
                    """
                    INSERT INTO intents (
                        id, title, lat, lng, geom, "startAt", "endAt", visibility,
                        "joinMode", "meetingKind", levels, "ownerId",
                        "boostedAt", "canceledAt", "createdAt", "updatedAt"
                    )
                    VALUES (
                        $1, $2, $3, $4, ST_SetSRID(ST_MakePoint($4, $3), 4326), $5, $6, 'PUBLIC',
                        'OPEN', $7::"MeetingKind", $8::"Level"[], $9,
                        $10, $11, $12, $12
                    )
                    ON CONFLICT (id) DO NOTHING
                    """,
                    _SEED_PREFIX + suffix, title, lat, lng, start, start + timedelta(hours=2),
                    kind, levels, _OWNER_ID,
                    now - timedelta(hours=1) if boosted else None,
                    now if canceled else None,
                    now,
                )
            print(f"  {len(_RAW)} intents upserted")

        print("\nEnsuring indexes…")
        await create_indexes(conn)

        total = await conn.fetchval("SELECT COUNT(*) FROM intents WHERE id LIKE $1", _SEED_PREFIX + "%")
        print("\n✓ Done")
        print(f"  seeded intents total : {total}")
    finally:
        await conn.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo intents for the map into Postgres")
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Remove previously seeded rows before inserting",
    )
    args = parser.parse_args()

    print("Intent Map Seeder")
    print(f"Mode: {'clear + insert' if args.clear else 'insert'}\n")

    asyncio.run(seed(clear_first=args.clear))
