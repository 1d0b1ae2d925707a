"""Drop the time entries and memberships of a specific user.

Usage:
    python scripts/drop_user_data.py <mongodb_url> <db_name> <user_id>
"""
import asyncio
import sys

from motor.motor_asyncio import AsyncIOMotorClient


async def drop_user_data(mongodb_url: str, db_name: str, user_id: str):
    """Delete all per-user documents."""
    client = AsyncIOMotorClient(mongodb_url)
    db = client[db_name]

    for collection_name in ["time_entries", "organization_users"]:
        result = await db[collection_name].delete_many({"user_id": user_id})
        print(f"Deleted {result.deleted_count} documents from {collection_name}")

    client.close()
    print("Done!")


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print("Usage: python drop_user_data.py <mongodb_url> <db_name> <user_id>")
        sys.exit(1)

    asyncio.run(drop_user_data(sys.argv[1], sys.argv[2], sys.argv[3]))
