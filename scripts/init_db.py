"""Create the indexes the service relies on.

Run once per deployment, before the API takes traffic. The API also does
this at startup, so the script is only needed for fresh databases managed
out of band. Reads the same environment (.env) as the API.

Usage:
    python scripts/init_db.py --mongodb-url mongodb://localhost:27017 --db-name time_tracker
"""
import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient
from timetracker.database import ensure_indexes


async def init_db(mongodb_url: str, db_name: str) -> None:
    client = AsyncIOMotorClient(mongodb_url)
    try:
        await ensure_indexes(client[db_name])
        print(f"Indexes ready on {db_name}")
    finally:
        client.close()


def main():
    parser = argparse.ArgumentParser(description="Create time tracker indexes")
    parser.add_argument("--mongodb-url", required=True, help="MongoDB connection URL")
    parser.add_argument("--db-name", default="time_tracker", help="Database name")
    args = parser.parse_args()

    asyncio.run(init_db(args.mongodb_url, args.db_name))


if __name__ == "__main__":
    main()
