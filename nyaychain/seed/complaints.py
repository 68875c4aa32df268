# Seed data: Complaints spread over the last few months in every status
#
# Complaints go through the lifecycle engine with back-dated clocks, so their
# history, resolution times and ledger fields look like real traffic.

from datetime import timedelta

from ..lifecycle import add_comment, apply_status_change, assign, create_complaint, toggle_upvote
from ..utils import now_utc

# ---------------------------------------------------------------------------
# Complaint records
# ---------------------------------------------------------------------------
COMPLAINTS = [
    {"title": "No water supply for three days", "category": "Water Supply",
     "description": "Taps in our lane have been dry since Monday. Tanker has not come either.",
     "address": "Ward 12, Shivaji Nagar", "coords": (73.8478, 18.5308),
     "citizen": "citizen1", "age_days": 80, "flow": ["assign", "in_progress", "resolved"],
     "official": "official_water", "department": "Water Works"},

    {"title": "Deep pothole near bus stop", "category": "Road & Infrastructure",
     "description": "A large pothole has formed in front of the bus stop. Two-wheelers keep falling.",
     "address": "FC Road bus stop", "coords": (73.8412, 18.5236),
     "citizen": "citizen2", "age_days": 45, "flow": ["assign", "resolved"],
     "official": "official_roads", "department": "Public Works"},

    {"title": "Street lights off on main road", "category": "Street Lighting",
     "description": "All street lights between the temple and the school are off at night.",
     "address": "Temple Road", "coords": (73.8567, 18.5204),
     "citizen": "citizen1", "age_days": 20, "flow": ["assign", "in_progress"],
     "official": "official_roads", "department": "Electrical Maintenance"},

    {"title": "Garbage not collected", "category": "Waste Management",
     "description": "Garbage has not been picked up from the society gate for a week.",
     "address": "Green Park Society", "coords": (73.8601, 18.5152),
     "citizen": "citizen2", "age_days": 6, "flow": ["assign"],
     "official": "official_water", "department": "Sanitation"},

    {"title": "Broken swing in children's park", "category": "Parks & Recreation",
     "description": "The swing chain is broken and sharp edges are exposed.",
     "address": "Sambhaji Park", "coords": (73.8435, 18.5189),
     "citizen": "citizen1", "age_days": 3, "flow": ["rejected"]},

    {"title": "Frequent power cuts in the evening", "category": "Electricity",
     "description": "Power goes off for 2-3 hours every evening this week.",
     "address": "Kothrud Depot", "coords": (73.8077, 18.5074),
     "citizen": "citizen2", "age_days": 1, "flow": []},
]

# ---------------------------------------------------------------------------
# Import function
# ---------------------------------------------------------------------------
async def import_complaints(db, user_ids: dict) -> int:
    """Insert seed complaints when the collection is empty. Returns the number inserted."""
    print("\n  Importing complaints...")
    if db.complaints.count_documents({}) > 0:
        print("  => complaints already present, skipped")
        return 0
    now = now_utc()
    admin_id = user_ids["admin"]
    for c in COMPLAINTS:
        created = now - timedelta(days=c["age_days"])
        lng, lat = c["coords"]
        doc = create_complaint(db, user_ids[c["citizen"]], c["title"], c["description"],
                               c["category"], lng, lat, c["address"], now=created)
        clock = created
        for step in c["flow"]:
            clock += timedelta(hours=18)
            if step == "assign":
                assign(db, doc["_id"], user_ids[c["official"]], c["department"], admin_id, now=clock)
            else:
                apply_status_change(db, doc["_id"], step, admin_id, now=clock)
        toggle_upvote(db, doc["_id"], user_ids["citizen2" if c["citizen"] == "citizen1" else "citizen1"])
        add_comment(db, doc["_id"], user_ids[c["citizen"]], "citizen",
                    "Please look into this soon.", now=created + timedelta(hours=1))
        print(f"    {c['title'][:40]:40s}  ({c['flow'][-1] if c['flow'] else 'pending'})")
    print(f"  => {len(COMPLAINTS)} complaints created")
    return len(COMPLAINTS)
