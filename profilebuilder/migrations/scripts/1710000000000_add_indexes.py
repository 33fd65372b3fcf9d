"""
Migration: Add Indexes

Description: Adds indexes to improve query performance
"""

from motor.motor_asyncio import AsyncIOMotorDatabase

from profilebuilder.db.collections import CATEGORIES_COLLECTION, PROFILES_COLLECTION, USERS_COLLECTION


async def up(db: AsyncIOMotorDatabase) -> None:
    await db[PROFILES_COLLECTION].create_index("slug", unique=True)
    await db[PROFILES_COLLECTION].create_index("userId")
    await db[PROFILES_COLLECTION].create_index("category")

    await db[USERS_COLLECTION].create_index("email", unique=True)
    await db[USERS_COLLECTION].create_index("username", unique=True)

    await db[CATEGORIES_COLLECTION].create_index("slug", unique=True)


async def down(db: AsyncIOMotorDatabase) -> None:
    await db[PROFILES_COLLECTION].drop_index("slug_1")
    await db[PROFILES_COLLECTION].drop_index("userId_1")
    await db[PROFILES_COLLECTION].drop_index("category_1")

    await db[USERS_COLLECTION].drop_index("email_1")
    await db[USERS_COLLECTION].drop_index("username_1")

    await db[CATEGORIES_COLLECTION].drop_index("slug_1")
