# NyayChain: seed data importer
# Creates indexes, default categories, demo accounts and sample complaints
#
# Usage:  python -m nyaychain.importer

import asyncio

from pymongo import MongoClient

from . import config
from .database import init_collections
from .seed.complaints import import_complaints
from .seed.users import USERS, import_users


async def main():
    print("=" * 64)
    print("  NyayChain Data Importer")
    print("=" * 64)

    # ------------------------------------------------------------------
    # 1. Connect MongoDB
    # ------------------------------------------------------------------
    print("\n[1/4] Connecting to MongoDB...")
    mongo_client = MongoClient(config.MONGODB_URL)
    db = mongo_client[config.MONGODB_DB]
    print(f"  Connected: {config.MONGODB_URL}/{config.MONGODB_DB}")

    try:
        # --------------------------------------------------------------
        # 2. Indexes + default categories
        # --------------------------------------------------------------
        print("\n[2/4] Indexes & categories")
        init_collections(db)
        print(f"  => {db.categories.count_documents({})} categories available")

        # --------------------------------------------------------------
        # 3. Users
        # --------------------------------------------------------------
        print("\n[3/4] Users")
        user_ids = await import_users(db)

        # --------------------------------------------------------------
        # 4. Complaints
        # --------------------------------------------------------------
        print("\n[4/4] Complaints")
        n_complaints = await import_complaints(db, user_ids)
    finally:
        mongo_client.close()

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    print("\n" + "=" * 64)
    print("  IMPORT COMPLETE")
    print("=" * 64)
    print(f"  Users:       {len(USERS)}")
    print(f"  Complaints:  {n_complaints}")
    print()
    print("  Test credentials:")
    for u in USERS:
        print(f"    {u['role'].value:9s} {u['email']:32s} / {u['password']}")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
