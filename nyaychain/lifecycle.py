"""Complaint lifecycle: creation, status transitions, assignment, upvotes, comments.

Every operation validates its input before writing and applies its change as
one single-document update, so the status change and its history entry land
together. Only the first `resolved` write that finds ``resolution_time`` unset
fills it in. History (``status_updates``) and ``comments`` are append-only.

Role checks are not repeated here; callers go through ``auth.require_role``.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument

from . import config
from .categories import resolve_category
from .errors import NotFound, ValidationFailed
from .ledger import record_complaint
from .models import (
    ComplaintResponse, ComplaintStatus, CommentEntry, Location, Priority,
    StatusUpdateEntry, UpvoteResult, UserRole,
)
from .utils import ensure_utc, hours_between, new_id, now_utc, round_half_up

logger = logging.getLogger(__name__)

S = ComplaintStatus

# Used only when ENFORCE_STATUS_GRAPH is on; otherwise any status may follow any other.
ALLOWED_TRANSITIONS = {
    S.PENDING: {S.ACKNOWLEDGED, S.IN_PROGRESS, S.RESOLVED, S.REJECTED},
    S.ACKNOWLEDGED: {S.IN_PROGRESS, S.RESOLVED, S.REJECTED},
    S.IN_PROGRESS: {S.RESOLVED, S.REJECTED},
    S.RESOLVED: {S.RESOLVED, S.IN_PROGRESS},
    S.REJECTED: {S.PENDING},
}

SORTABLE_FIELDS = {"created_at", "updated_at", "status", "priority", "title", "resolution_time"}
SUBMISSION_NOTE = "Complaint submitted and recorded on ledger"


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationFailed(f"Invalid {label} '{value}'. Must be one of: {allowed}")


def _required_text(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationFailed(f"{label} is required")
    return str(value).strip()


def _history_entry(status: ComplaintStatus, actor_id: Optional[str], note: str, now: datetime) -> dict:
    return {"id": new_id(), "status": status.value, "updated_by": actor_id,
            "note": note, "timestamp": now}


def allowed_transitions(status) -> set:
    return ALLOWED_TRANSITIONS[_coerce(ComplaintStatus, status, "status")]


def check_transition(current, new, enforce: Optional[bool] = None) -> None:
    enforce = config.ENFORCE_STATUS_GRAPH if enforce is None else enforce
    if not enforce:
        return
    current = _coerce(ComplaintStatus, current, "status")
    new = _coerce(ComplaintStatus, new, "status")
    if new not in ALLOWED_TRANSITIONS[current]:
        raise ValidationFailed(f"Cannot move a complaint from {current.value} to {new.value}")


def get_complaint(db, complaint_id: str) -> dict:
    complaint = db.complaints.find_one({"_id": complaint_id})
    if not complaint:
        raise NotFound("Complaint not found")
    return complaint


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------
def build_complaint(db, submitted_by: str, title: str, description: str, category: str,
                    longitude, latitude, address: str, image_paths=(), now: datetime = None) -> dict:
    """Validate submission fields and return the document to insert (no write)."""
    title = _required_text(title, "Title")
    description = _required_text(description, "Description")
    address = _required_text(address, "Address")
    category_ref = _required_text(category, "Category")
    try:
        lng, lat = float(longitude), float(latitude)
    except (TypeError, ValueError):
        raise ValidationFailed("Latitude and longitude are required")
    if not (math.isfinite(lng) and math.isfinite(lat)) or not (-180 <= lng <= 180 and -90 <= lat <= 90):
        raise ValidationFailed("Coordinates out of range")
    image_paths = list(image_paths)
    if len(image_paths) > config.MAX_IMAGES:
        raise ValidationFailed(f"A complaint can carry at most {config.MAX_IMAGES} images")
    category_doc = resolve_category(db, category_ref)

    now = now or now_utc()
    doc = {
        "_id": new_id(),
        "title": title, "description": description,
        "category": category_doc["_id"],
        "location": {"type": "Point", "coordinates": [lng, lat], "address": address},
        "images": image_paths,
        "status": S.PENDING.value,
        "submitted_by": submitted_by,
        "assigned_to": None, "department": None,
        "priority": Priority.MEDIUM.value,
        "status_updates": [_history_entry(S.PENDING, submitted_by, SUBMISSION_NOTE, now)],
        "comments": [], "upvotes": [],
        "resolution_time": None,
        "created_at": now, "updated_at": now,
    }
    doc.update(record_complaint())
    return doc


def create_complaint(db, submitted_by: str, title: str, description: str, category: str,
                     longitude, latitude, address: str, image_paths=(), now: datetime = None) -> dict:
    doc = build_complaint(db, submitted_by, title, description, category,
                          longitude, latitude, address, image_paths, now=now)
    db.complaints.insert_one(doc)
    logger.info("Complaint %s submitted by %s (tx %s)", doc["_id"], submitted_by, doc["transaction_hash"])
    return doc


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------
def apply_status_change(db, complaint_id: str, new_status, actor_id: str,
                        note: Optional[str] = None, now: datetime = None) -> dict:
    new_status = _coerce(ComplaintStatus, new_status, "status")
    complaint = get_complaint(db, complaint_id)
    old_status = complaint["status"]
    check_transition(old_status, new_status)

    now = now or now_utc()
    entry = _history_entry(new_status, actor_id,
                           note or f"Status updated from {old_status} to {new_status.value}", now)
    set_fields = {"status": new_status.value, "updated_at": now}
    push = {"status_updates": entry}

    updated = None
    if new_status == S.RESOLVED:
        # Only the write that finds resolution_time unset may fill it in
        hours = round_half_up(hours_between(complaint["created_at"], now))
        updated = db.complaints.find_one_and_update(
            {"_id": complaint_id, "resolution_time": None},
            {"$set": {**set_fields, "resolution_time": hours}, "$push": push},
            return_document=ReturnDocument.AFTER)
    if updated is None:
        updated = db.complaints.find_one_and_update(
            {"_id": complaint_id},
            {"$set": set_fields, "$push": push},
            return_document=ReturnDocument.AFTER)
    if updated is None:
        raise NotFound("Complaint not found")
    logger.info("Complaint %s: %s -> %s by %s", complaint_id, old_status, new_status.value, actor_id)
    return updated


def assign(db, complaint_id: str, assignee_id: str, department: str, actor_id: str,
           priority=None, note: Optional[str] = None, now: datetime = None) -> dict:
    department = _required_text(department, "Department")
    assignee_id = _required_text(assignee_id, "Official ID")
    if priority is not None:
        priority = _coerce(Priority, priority, "priority")
    assignee = db.users.find_one({"_id": assignee_id})
    if not assignee or assignee["role"] not in (UserRole.OFFICIAL.value, UserRole.ADMIN.value):
        raise ValidationFailed("Assignee must be an existing official or admin")
    complaint = get_complaint(db, complaint_id)

    now = now or now_utc()
    set_fields = {"assigned_to": assignee_id, "department": department, "updated_at": now}
    if priority is not None:
        set_fields["priority"] = priority.value
    update = {"$set": set_fields}
    if complaint["status"] == S.PENDING.value:
        set_fields["status"] = S.ACKNOWLEDGED.value
        update["$push"] = {"status_updates": _history_entry(
            S.ACKNOWLEDGED, actor_id, note or f"Assigned to department: {department}", now)}

    updated = db.complaints.find_one_and_update(
        {"_id": complaint_id}, update, return_document=ReturnDocument.AFTER)
    if updated is None:
        raise NotFound("Complaint not found")
    logger.info("Complaint %s assigned to %s (%s) by %s", complaint_id, assignee_id, department, actor_id)
    return updated


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------
def toggle_upvote(db, complaint_id: str, citizen_id: str) -> UpvoteResult:
    complaint = get_complaint(db, complaint_id)
    already = citizen_id in complaint.get("upvotes", [])
    op = {"$pull": {"upvotes": citizen_id}} if already else {"$addToSet": {"upvotes": citizen_id}}
    updated = db.complaints.find_one_and_update(
        {"_id": complaint_id}, op, return_document=ReturnDocument.AFTER)
    if updated is None:
        raise NotFound("Complaint not found")
    return UpvoteResult(upvotes=len(updated.get("upvotes", [])), has_upvoted=not already)


def add_comment(db, complaint_id: str, author_id: str, role, text: str, now: datetime = None) -> dict:
    text = _required_text(text, "Comment text")
    role = _coerce(UserRole, role, "role")
    now = now or now_utc()
    comment = {"id": new_id(), "user": author_id, "role": role.value, "text": text, "created_at": now}
    updated = db.complaints.find_one_and_update(
        {"_id": complaint_id},
        {"$push": {"comments": comment}, "$set": {"updated_at": now}},
        return_document=ReturnDocument.AFTER)
    if updated is None:
        raise NotFound("Complaint not found")
    return updated


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
def list_complaints(db, status=None, category: Optional[str] = None, submitted_by: Optional[str] = None,
                    near: Optional[tuple] = None, page: int = 1, limit: int = 10,
                    sort: str = "-created_at") -> dict:
    query = {}
    if status:
        query["status"] = _coerce(ComplaintStatus, status, "status").value
    if category:
        query["category"] = category
    if submitted_by:
        query["submitted_by"] = submitted_by
    if near:
        lng, lat, radius_km = near
        # Earth radius in km; $centerSphere takes radians
        query["location"] = {"$geoWithin": {"$centerSphere": [[lng, lat], radius_km / 6378.1]}}

    direction = -1 if sort.startswith("-") else 1
    field = sort.lstrip("-+")
    if field not in SORTABLE_FIELDS:
        raise ValidationFailed(f"Cannot sort by '{field}'")

    total = db.complaints.count_documents(query)
    docs = list(db.complaints.find(query).sort(field, direction).skip((page - 1) * limit).limit(limit))
    return {"total": total, "page": page, "pages": math.ceil(total / limit) if limit else 0,
            "limit": limit, "complaints": docs}


def complaint_to_response(c: dict, viewer_id: Optional[str] = None) -> ComplaintResponse:
    location = c.get("location") or {}
    return ComplaintResponse(
        id=c["_id"], title=c["title"], description=c["description"], category=c["category"],
        location=Location(coordinates=location.get("coordinates", []), address=location.get("address", "")),
        images=c.get("images", []), status=c["status"], submitted_by=c["submitted_by"],
        assigned_to=c.get("assigned_to"), department=c.get("department"),
        priority=c.get("priority", Priority.MEDIUM.value),
        status_updates=[StatusUpdateEntry(**{**u, "timestamp": ensure_utc(u["timestamp"])})
                        for u in c.get("status_updates", [])],
        comments=[CommentEntry(**{**m, "created_at": ensure_utc(m["created_at"])})
                  for m in c.get("comments", [])],
        upvotes=c.get("upvotes", []), upvote_count=len(c.get("upvotes", [])),
        has_upvoted=viewer_id is not None and viewer_id in c.get("upvotes", []),
        resolution_time=c.get("resolution_time"),
        transaction_hash=c.get("transaction_hash"), block_number=c.get("block_number"),
        blockchain_timestamp=ensure_utc(c["blockchain_timestamp"]) if c.get("blockchain_timestamp") else None,
        created_at=ensure_utc(c["created_at"]), updated_at=ensure_utc(c["updated_at"]))
