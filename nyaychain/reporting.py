"""Read-only dashboard reports over the complaint collection.

Nothing here writes. Reports run without transactional isolation, so counts
taken while complaints are being updated may be momentarily inconsistent
with each other.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Union

from .categories import DEFAULT_CATEGORY_NAMES, ids_by_name
from .errors import ValidationFailed
from .lifecycle import complaint_to_response
from .models import (
    AdminDashboard, CategoryStat, ComplaintStatus, LiveStats, MapPoint, RecentComplaint,
    SummaryReport, TimeSeriesDataset, TimeSeriesReport, TopCategory, UserRole,
)
from .utils import ensure_utc, hours_between, now_utc, round_half_up, time_ago

S = ComplaintStatus

RESPONDED = (S.ACKNOWLEDGED.value, S.IN_PROGRESS.value, S.RESOLVED.value)
MAP_LIMIT = 200
MONTHS = 12


def _rate(part: int, total: int) -> int:
    return round_half_up(100 * part / total) if total else 0


def _mean(values: Sequence[float]) -> int:
    return round_half_up(sum(values) / len(values)) if values else 0


def _resolution_times(db, query: dict) -> List[float]:
    query = {**query, "resolution_time": {"$ne": None}}
    return [c["resolution_time"] for c in db.complaints.find(query, {"resolution_time": 1})]


def summary(db) -> SummaryReport:
    total = db.complaints.count_documents({})
    counts = {s.value: db.complaints.count_documents({"status": s.value}) for s in S}

    response_hours = []
    for c in db.complaints.find({}, {"created_at": 1, "status_updates": 1}):
        first = next((u for u in c.get("status_updates", []) if u["status"] in RESPONDED), None)
        if first:
            response_hours.append(hours_between(c["created_at"], first["timestamp"]))

    responded = sum(counts[s] for s in RESPONDED)
    return SummaryReport(
        total_complaints=total,
        pending=counts[S.PENDING.value], acknowledged=counts[S.ACKNOWLEDGED.value],
        in_progress=counts[S.IN_PROGRESS.value], resolved=counts[S.RESOLVED.value],
        rejected=counts[S.REJECTED.value],
        avg_resolution_time=_mean(_resolution_times(db, {})),
        avg_response_time=_mean(response_hours),
        response_rate=_rate(responded, total),
        citizen_count=db.users.count_documents({"role": UserRole.CITIZEN.value}),
    )


def by_category(db, names: Optional[Sequence[str]] = None) -> List[CategoryStat]:
    """Per-category breakdown for a fixed list of category names.

    The list defaults to the built-in category names rather than whatever is in
    the category store; names are mapped to ids through the store, and a name
    with no stored category reports zeros.
    """
    names = list(names or DEFAULT_CATEGORY_NAMES)
    ids = ids_by_name(db, names)
    stats = []
    for name in names:
        cid = ids.get(name)
        if cid is None:
            stats.append(CategoryStat(name=name, total=0, resolved=0, pending=0, in_progress=0,
                                      avg_resolution_time=0, resolution_rate=0))
            continue
        q = {"category": cid}
        total = db.complaints.count_documents(q)
        resolved = db.complaints.count_documents({**q, "status": S.RESOLVED.value})
        stats.append(CategoryStat(
            name=name, total=total, resolved=resolved,
            pending=db.complaints.count_documents({**q, "status": S.PENDING.value}),
            in_progress=db.complaints.count_documents(
                {**q, "status": {"$in": [S.IN_PROGRESS.value, S.ACKNOWLEDGED.value]}}),
            avg_resolution_time=_mean(_resolution_times(db, q)),
            resolution_rate=_rate(resolved, total),
        ))
    return stats


def month_windows(now: datetime, months: int = MONTHS) -> List[tuple]:
    """(start, end) UTC month boundaries, oldest first, ending with the current month."""
    now = ensure_utc(now)
    year, month = now.year, now.month
    starts = []
    for _ in range(months):
        starts.append(datetime(year, month, 1, tzinfo=timezone.utc))
        year, month = (year - 1, 12) if month == 1 else (year, month - 1)
    starts.reverse()
    windows = []
    for start in starts:
        y, m = (start.year + 1, 1) if start.month == 12 else (start.year, start.month + 1)
        windows.append((start, datetime(y, m, 1, tzinfo=timezone.utc)))
    return windows


def time_series(db, now: Optional[datetime] = None) -> TimeSeriesReport:
    windows = month_windows(now or now_utc())
    submitted, resolved = [], []
    for start, end in windows:
        submitted.append(db.complaints.count_documents({"created_at": {"$gte": start, "$lt": end}}))
        resolved.append(db.complaints.count_documents({"status_updates": {"$elemMatch": {
            "status": S.RESOLVED.value, "timestamp": {"$gte": start, "$lt": end}}}}))
    return TimeSeriesReport(
        labels=[start.strftime("%b %Y") for start, _ in windows],
        datasets=[TimeSeriesDataset(name="Submitted", data=submitted),
                  TimeSeriesDataset(name="Resolved", data=resolved)])


def parse_bounds(bounds: Union[str, Sequence[float], None]) -> Optional[tuple]:
    if bounds is None or bounds == "":
        return None
    parts = bounds.split(",") if isinstance(bounds, str) else list(bounds)
    try:
        west, south, east, north = (float(p) for p in parts)
    except (TypeError, ValueError):
        raise ValidationFailed("bounds must be 'west,south,east,north'")
    return west, south, east, north


def map_data(db, bounds=None) -> List[MapPoint]:
    query = {}
    box = parse_bounds(bounds)
    if box:
        west, south, east, north = box
        query = {
            "location.coordinates.0": {"$gte": west, "$lte": east},
            "location.coordinates.1": {"$gte": south, "$lte": north},
        }
    projection = {"title": 1, "category": 1, "status": 1, "location.coordinates": 1,
                  "upvotes": 1, "priority": 1, "created_at": 1}
    points = []
    for c in db.complaints.find(query, projection).limit(MAP_LIMIT):
        coords = (c.get("location") or {}).get("coordinates") or []
        if len(coords) != 2:
            continue
        points.append(MapPoint(
            id=c["_id"], title=c["title"], category=c["category"], status=c["status"],
            coordinates=[float(coords[0]), float(coords[1])],
            upvotes=len(c.get("upvotes", [])), priority=c.get("priority", "medium"),
            created_at=ensure_utc(c["created_at"])))
    return points


def _category_names(db, ids) -> dict:
    return {c["_id"]: c["name"] for c in db.categories.find({"_id": {"$in": list(ids)}})}


def public_live_stats(db, now: Optional[datetime] = None) -> LiveStats:
    now = ensure_utc(now or now_utc())
    total = db.complaints.count_documents({})
    pending = db.complaints.count_documents({"status": S.PENDING.value})
    resolved = db.complaints.count_documents({"status": S.RESOLVED.value})
    in_progress = db.complaints.count_documents(
        {"status": {"$in": [S.IN_PROGRESS.value, S.ACKNOWLEDGED.value]}})
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    today = db.complaints.count_documents({"created_at": {"$gte": start_of_day}})
    active = db.complaints.distinct("submitted_by", {"created_at": {"$gte": now - timedelta(days=30)}})

    top = list(db.complaints.aggregate([
        {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}}, {"$limit": 3}]))
    recent = list(db.complaints.find({}).sort("created_at", -1).limit(5))
    names = _category_names(db, {t["_id"] for t in top} | {c["category"] for c in recent})

    return LiveStats(
        total_complaints=total, pending_complaints=pending, resolved_complaints=resolved,
        in_progress_complaints=in_progress, today_complaints=today, active_citizens=len(active),
        response_rate=_rate(resolved + in_progress, total),
        recent_complaints=[RecentComplaint(
            id=c["_id"],
            title=c["title"] if len(c["title"]) <= 50 else c["title"][:50] + "...",
            category=names.get(c["category"], c["category"]), status=c["status"],
            location=(c.get("location") or {}).get("address") or "Location not specified",
            time_ago=time_ago(c["created_at"], now), priority=c.get("priority", "medium"),
        ) for c in recent],
        top_categories=[TopCategory(name=names.get(t["_id"], str(t["_id"])), count=t["count"]) for t in top],
        last_updated=now,
    )


def admin_dashboard(db) -> AdminDashboard:
    users_by_role = {r["_id"]: r["count"] for r in db.users.aggregate(
        [{"$group": {"_id": "$role", "count": {"$sum": 1}}}])}
    by_status = {r["_id"]: r["count"] for r in db.complaints.aggregate(
        [{"$group": {"_id": "$status", "count": {"$sum": 1}}}])}
    recent = db.complaints.find({}).sort("created_at", -1).limit(10)
    return AdminDashboard(
        users_by_role=users_by_role, complaints_by_status=by_status,
        total_users=db.users.count_documents({}),
        total_complaints=db.complaints.count_documents({}),
        recent_complaints=[complaint_to_response(c) for c in recent])
