# Category store: default seeding, lookup and admin CRUD

import logging
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from .errors import NotFound, ValidationFailed
from .models import CategoryCreate, CategoryResponse, CategoryUpdate, CategoryOrder
from .utils import new_id, now_utc, ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    {"name": "Road & Infrastructure", "description": "Issues related to roads, bridges, and infrastructure",
     "icon": "Construction", "color": "#8b5cf6", "order": 1},
    {"name": "Water Supply", "description": "Water related complaints and issues",
     "icon": "Droplets", "color": "#06b6d4", "order": 2},
    {"name": "Electricity", "description": "Power outages and electrical issues",
     "icon": "Zap", "color": "#eab308", "order": 3},
    {"name": "Waste Management", "description": "Garbage collection and waste disposal",
     "icon": "Trash2", "color": "#10b981", "order": 4},
    {"name": "Street Lighting", "description": "Street light maintenance and issues",
     "icon": "Lightbulb", "color": "#f59e0b", "order": 5},
    {"name": "Public Safety", "description": "Safety and security related concerns",
     "icon": "Shield", "color": "#dc2626", "order": 6},
    {"name": "Parks & Recreation", "description": "Parks, playgrounds and recreational facilities",
     "icon": "Trees", "color": "#059669", "order": 7},
    {"name": "Traffic & Transportation", "description": "Traffic signals, public transport issues",
     "icon": "Car", "color": "#7c3aed", "order": 8},
    {"name": "Healthcare", "description": "Public health and medical facility issues",
     "icon": "Heart", "color": "#e11d48", "order": 9},
    {"name": "Education", "description": "Schools and educational facility issues",
     "icon": "GraduationCap", "color": "#2563eb", "order": 10},
]

DEFAULT_CATEGORY_NAMES = [c["name"] for c in DEFAULT_CATEGORIES]


def initialize_default_categories(db) -> int:
    if db.categories.count_documents({}) > 0:
        return 0
    now = now_utc()
    docs = [{"_id": new_id(), **c, "is_active": True, "created_by": None,
             "created_at": now, "updated_at": now} for c in DEFAULT_CATEGORIES]
    db.categories.insert_many(docs)
    logger.info("Default categories initialized (%d)", len(docs))
    return len(docs)


def category_to_response(c: dict) -> CategoryResponse:
    return CategoryResponse(
        id=c["_id"], name=c["name"], description=c.get("description"),
        icon=c.get("icon", "FileText"), color=c.get("color", "#3b82f6"),
        is_active=c.get("is_active", True), order=c.get("order", 0),
        created_at=ensure_utc(c["created_at"]))


def resolve_category(db, ref: str) -> dict:
    """Find an active category by id, falling back to its name."""
    category = db.categories.find_one({"_id": ref}) or db.categories.find_one({"name": ref})
    if not category:
        raise ValidationFailed(f"Unknown category: {ref}")
    if not category.get("is_active", True):
        raise ValidationFailed(f"Category '{category['name']}' is not accepting complaints")
    return category


def ids_by_name(db, names: List[str]) -> dict:
    return {c["name"]: c["_id"] for c in db.categories.find({"name": {"$in": list(names)}})}


def list_categories(db, include_inactive: bool = False) -> List[CategoryResponse]:
    query = {} if include_inactive else {"is_active": True}
    return [category_to_response(c) for c in db.categories.find(query).sort([("order", 1), ("name", 1)])]


def create_category(db, data: CategoryCreate, created_by: Optional[str]) -> CategoryResponse:
    name = data.name.strip()
    if db.categories.find_one({"name": name}):
        raise ValidationFailed("Category with this name already exists")
    now = now_utc()
    doc = {"_id": new_id(), "name": name, "description": data.description,
           "icon": data.icon or "FileText", "color": data.color or "#3b82f6",
           "order": data.order or 0, "is_active": True, "created_by": created_by,
           "created_at": now, "updated_at": now}
    try:
        db.categories.insert_one(doc)
    except DuplicateKeyError:
        raise ValidationFailed("Category with this name already exists")
    return category_to_response(doc)


def update_category(db, category_id: str, data: CategoryUpdate) -> CategoryResponse:
    set_fields = data.model_dump(exclude_none=True)
    if not set_fields:
        raise ValidationFailed("No fields to update")
    if "name" in set_fields:
        set_fields["name"] = set_fields["name"].strip()
        clash = db.categories.find_one({"name": set_fields["name"], "_id": {"$ne": category_id}})
        if clash:
            raise ValidationFailed("Category with this name already exists")
    set_fields["updated_at"] = now_utc()
    result = db.categories.update_one({"_id": category_id}, {"$set": set_fields})
    if result.matched_count == 0:
        raise NotFound("Category not found")
    return category_to_response(db.categories.find_one({"_id": category_id}))


def toggle_category(db, category_id: str) -> CategoryResponse:
    category = db.categories.find_one({"_id": category_id})
    if not category:
        raise NotFound("Category not found")
    db.categories.update_one(
        {"_id": category_id},
        {"$set": {"is_active": not category.get("is_active", True), "updated_at": now_utc()}})
    return category_to_response(db.categories.find_one({"_id": category_id}))


def delete_category(db, category_id: str) -> None:
    in_use = db.complaints.count_documents({"category": category_id})
    if in_use > 0:
        raise ValidationFailed(
            f"Cannot delete category. It is being used in {in_use} complaint(s); deactivate it instead.")
    result = db.categories.delete_one({"_id": category_id})
    if result.deleted_count == 0:
        raise NotFound("Category not found")


def reorder_categories(db, entries: List[CategoryOrder]) -> List[CategoryResponse]:
    for entry in entries:
        db.categories.update_one({"_id": entry.id}, {"$set": {"order": entry.order, "updated_at": now_utc()}})
    return list_categories(db)
