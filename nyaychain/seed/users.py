# Seed data: Users (admin, officials, citizens)

from .. import config
from ..auth import new_user_doc
from ..models import UserRole

# ---------------------------------------------------------------------------
# Raw user definitions
# ---------------------------------------------------------------------------
USERS = [
    # ---- Admin ----
    {"key": "admin", "name": "System Administrator", "email": config.DEFAULT_ADMIN_EMAIL,
     "password": config.DEFAULT_ADMIN_PASSWORD, "role": UserRole.ADMIN, "department": None},

    # ---- Officials ----
    {"key": "official_water", "name": "Er. Meera Iyer", "email": "meera.water@nyaychain.com",
     "password": "official123", "role": UserRole.OFFICIAL, "department": "Water Works"},

    {"key": "official_roads", "name": "Sri Arjun Rao", "email": "arjun.roads@nyaychain.com",
     "password": "official123", "role": UserRole.OFFICIAL, "department": "Public Works"},

    # ---- Citizens ----
    {"key": "citizen1", "name": "Test User", "email": "test@example.com",
     "password": "password123", "role": UserRole.CITIZEN, "department": None},

    {"key": "citizen2", "name": "Kavya Menon", "email": "kavya.menon@example.com",
     "password": "password123", "role": UserRole.CITIZEN, "department": None},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
async def import_users(db) -> dict:
    """Insert seed users that do not exist yet. Returns {key: _id} mapping."""
    print("\n  Importing seed users...")
    user_ids = {}
    created = 0
    for u in USERS:
        existing = db.users.find_one({"email": u["email"]})
        if existing:
            user_ids[u["key"]] = existing["_id"]
            print(f"    {u['email']:32s}  exists")
            continue
        doc = new_user_doc(u["name"], u["email"], u["password"], u["role"], department=u["department"])
        db.users.insert_one(doc)
        user_ids[u["key"]] = doc["_id"]
        created += 1
        print(f"    {u['email']:32s}  ({u['role'].value})")
    print(f"  => {created} users created")
    return user_ids
