"""
Migration: Add Profile Views

Description: Adds a views counter to profiles
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from profilebuilder.db.collections import PROFILES_COLLECTION


async def up(db: AsyncIOMotorDatabase) -> None:
    # Existing profiles start at zero; new ones get the field from the app
    await db[PROFILES_COLLECTION].update_many({"views": {"$exists": False}}, {"$set": {"views": 0}})
    await db[PROFILES_COLLECTION].create_index([("views", DESCENDING)])


async def down(db: AsyncIOMotorDatabase) -> None:
    await db[PROFILES_COLLECTION].update_many({}, {"$unset": {"views": ""}})
    await db[PROFILES_COLLECTION].drop_index("views_-1")
