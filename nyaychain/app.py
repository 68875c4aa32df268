# NyayChain: civic grievance platform
# FastAPI + MongoDB, with simulated ledger receipts

import asyncio
import logging
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Form, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import DuplicateKeyError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from . import categories, config, ledger, lifecycle, reporting, uploads
from .auth import (
    check_credentials, create_access_token, get_current_user, get_optional_user, hash_password,
    new_user_doc, oauth2_scheme, require_role, revoke_token, user_to_response, verify_password,
)
from .database import executor, get_db, lifespan
from .errors import Forbidden, NotFound, NyayChainError, ValidationFailed
from .models import (
    AdminDashboard, AssignmentRequest, CategoryCreate, CategoryReorder, CategoryResponse,
    CategoryStat, CategoryUpdate, CommentCreate, ComplaintListResponse, ComplaintResponse,
    ComplaintStatus, LedgerVerification, LiveStats, MapPoint, OfficialCreate, PasswordChange,
    ProfileUpdate, RoleUpdate, StatusChangeRequest, SummaryReport, TimeSeriesReport,
    TokenResponse, UpvoteResult, UserCreate, UserLogin, UserResponse, UserRole,
)
from .utils import now_utc, validate_uuid

logger = logging.getLogger(__name__)

ADMIN = UserRole.ADMIN.value
OFFICIAL = UserRole.OFFICIAL.value
CITIZEN = UserRole.CITIZEN.value

# ---------------------------------------------------------------------------
# App & Globals
# ---------------------------------------------------------------------------
app = FastAPI(title="NyayChain Grievance Platform", lifespan=lifespan)
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
@app.exception_handler(NyayChainError)
async def nyaychain_error_handler(request: Request, exc: NyayChainError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# ---------------------------------------------------------------------------
# Security Headers Middleware
# ---------------------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(self), camera=(), microphone=()"
        return response

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

config.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(config.UPLOAD_DIR)), name="uploads")


async def _run(fn, *args):
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(executor, fn, *args)


def _issue_token(user: dict) -> TokenResponse:
    token = create_access_token({"sub": str(user["_id"]), "role": user["role"]})
    return TokenResponse(access_token=token, user=user_to_response(user))


def _insert_user(db, doc: dict) -> None:
    if db.users.find_one({"email": doc["email"]}):
        raise ValidationFailed("User already exists")
    try:
        db.users.insert_one(doc)
    except DuplicateKeyError:
        raise ValidationFailed("User already exists")

# ---------------------------------------------------------------------------
# AUTH ENDPOINTS
# ---------------------------------------------------------------------------
@app.post("/api/auth/register", response_model=TokenResponse, status_code=201)
@limiter.limit("5/minute")
async def register(request: Request, user_data: UserCreate, db=Depends(get_db)):
    # Public registration is citizen-only; officials are created by an admin
    doc = new_user_doc(user_data.name, user_data.email, user_data.password,
                       UserRole.CITIZEN, phone=user_data.phone)
    await _run(_insert_user, db, doc)
    logger.info("Citizen registered: %s", doc["email"])
    return _issue_token(doc)

@app.post("/api/auth/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(request: Request, form: UserLogin, db=Depends(get_db)):
    user = await _run(check_credentials, db, form.email, form.password)
    if user["role"] == ADMIN:
        raise Forbidden("Admins must sign in through the admin login")
    return _issue_token(user)

@app.post("/api/auth/admin/login", response_model=TokenResponse)
@limiter.limit("5/minute")
async def admin_login(request: Request, form: UserLogin, db=Depends(get_db)):
    user = await _run(check_credentials, db, form.email, form.password)
    if user["role"] != ADMIN:
        logger.warning("Non-admin admin-login attempt: %s", user["email"])
        raise Forbidden("Admin access required")
    return _issue_token(user)

@app.get("/api/auth/me", response_model=UserResponse)
async def get_me(user=Depends(get_current_user)):
    return user_to_response(user)

@app.post("/api/auth/logout")
async def logout(user=Depends(get_current_user), token: Optional[str] = Depends(oauth2_scheme)):
    revoke_token(token)
    return {"detail": "Logged out successfully"}

# ---------------------------------------------------------------------------
# COMPLAINT ENDPOINTS
# ---------------------------------------------------------------------------
@app.get("/api/complaints", response_model=ComplaintListResponse)
async def list_complaints(status: Optional[ComplaintStatus] = None,
                          category: Optional[str] = None,
                          lng: Optional[float] = None, lat: Optional[float] = None,
                          radius_km: float = Query(5.0, gt=0, le=500),
                          sort: str = "-created_at",
                          page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                          viewer=Depends(get_optional_user), db=Depends(get_db)):
    if (lng is None) != (lat is None):
        raise ValidationFailed("lng and lat must be given together")
    near = (lng, lat, radius_km) if lng is not None else None
    result = await _run(lambda: lifecycle.list_complaints(
        db, status=status, category=category, near=near, page=page, limit=limit, sort=sort))
    viewer_id = str(viewer["_id"]) if viewer else None
    result["complaints"] = [lifecycle.complaint_to_response(c, viewer_id) for c in result["complaints"]]
    return ComplaintListResponse(**result)

@app.get("/api/complaints/{complaint_id}", response_model=ComplaintResponse)
async def get_complaint(complaint_id: str, viewer=Depends(get_optional_user), db=Depends(get_db)):
    complaint_id = validate_uuid(complaint_id, "complaint_id")
    complaint = await _run(lifecycle.get_complaint, db, complaint_id)
    return lifecycle.complaint_to_response(complaint, str(viewer["_id"]) if viewer else None)

@app.post("/api/complaints", response_model=ComplaintResponse, status_code=201)
async def create_complaint(title: str = Form(...), description: str = Form(...),
                           category: str = Form(...), address: str = Form(...),
                           longitude: str = Form(...), latitude: str = Form(...),
                           images: Optional[List[UploadFile]] = File(None),
                           user=Depends(require_role(CITIZEN)), db=Depends(get_db)):
    payloads = await uploads.read_images(images)
    paths = await _run(uploads.store_images, payloads)
    try:
        doc = await _run(lambda: lifecycle.create_complaint(
            db, str(user["_id"]), title, description, category, longitude, latitude, address,
            image_paths=paths))
    except Exception:
        await _run(uploads.discard_images, paths)
        raise
    return lifecycle.complaint_to_response(doc)

@app.patch("/api/complaints/{complaint_id}/status", response_model=ComplaintResponse)
async def update_status(complaint_id: str, body: StatusChangeRequest,
                        user=Depends(require_role(ADMIN, OFFICIAL)), db=Depends(get_db)):
    complaint_id = validate_uuid(complaint_id, "complaint_id")
    updated = await _run(lambda: lifecycle.apply_status_change(
        db, complaint_id, body.status, str(user["_id"]), note=body.note))
    return lifecycle.complaint_to_response(updated)

@app.patch("/api/complaints/{complaint_id}/assign", response_model=ComplaintResponse)
async def assign_complaint(complaint_id: str, body: AssignmentRequest,
                           user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    complaint_id = validate_uuid(complaint_id, "complaint_id")
    updated = await _run(lambda: lifecycle.assign(
        db, complaint_id, body.official_id, body.department, str(user["_id"]),
        priority=body.priority, note=body.note))
    return lifecycle.complaint_to_response(updated)

@app.post("/api/complaints/{complaint_id}/upvote", response_model=UpvoteResult)
async def upvote_complaint(complaint_id: str, user=Depends(require_role(CITIZEN)), db=Depends(get_db)):
    complaint_id = validate_uuid(complaint_id, "complaint_id")
    return await _run(lifecycle.toggle_upvote, db, complaint_id, str(user["_id"]))

@app.post("/api/complaints/{complaint_id}/comments", response_model=ComplaintResponse, status_code=201)
async def add_comment(complaint_id: str, body: CommentCreate,
                      user=Depends(get_current_user), db=Depends(get_db)):
    complaint_id = validate_uuid(complaint_id, "complaint_id")
    updated = await _run(lambda: lifecycle.add_comment(
        db, complaint_id, str(user["_id"]), user["role"], body.text))
    return lifecycle.complaint_to_response(updated)

@app.get("/api/complaints/{complaint_id}/ledger", response_model=LedgerVerification)
async def verify_ledger(complaint_id: str, db=Depends(get_db)):
    complaint_id = validate_uuid(complaint_id, "complaint_id")
    complaint = await _run(lifecycle.get_complaint, db, complaint_id)
    return await ledger.verify_complaint(complaint)

# ---------------------------------------------------------------------------
# STATS ENDPOINTS
# ---------------------------------------------------------------------------
@app.get("/api/stats/summary", response_model=SummaryReport)
async def stats_summary(db=Depends(get_db)):
    return await _run(reporting.summary, db)

@app.get("/api/stats/by-category", response_model=List[CategoryStat])
async def stats_by_category(db=Depends(get_db)):
    return await _run(reporting.by_category, db)

@app.get("/api/stats/time-series", response_model=TimeSeriesReport)
async def stats_time_series(db=Depends(get_db)):
    return await _run(reporting.time_series, db)

@app.get("/api/stats/map-data", response_model=List[MapPoint])
async def stats_map_data(bounds: Optional[str] = None, db=Depends(get_db)):
    return await _run(reporting.map_data, db, bounds)

@app.get("/api/stats/public/live", response_model=LiveStats)
async def stats_live(db=Depends(get_db)):
    return await _run(reporting.public_live_stats, db)

# ---------------------------------------------------------------------------
# CATEGORY ENDPOINTS
# ---------------------------------------------------------------------------
@app.get("/api/categories", response_model=List[CategoryResponse])
async def list_active_categories(db=Depends(get_db)):
    return await _run(categories.list_categories, db)

@app.get("/api/categories/all", response_model=List[CategoryResponse])
async def list_all_categories(user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    return await _run(categories.list_categories, db, True)

@app.post("/api/categories", response_model=CategoryResponse, status_code=201)
async def create_category(body: CategoryCreate, user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    created = await _run(categories.create_category, db, body, str(user["_id"]))
    logger.info("Admin %s created category %s", user["email"], created.name)
    return created

@app.patch("/api/categories/reorder", response_model=List[CategoryResponse])
async def reorder_categories(body: CategoryReorder, user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    return await _run(categories.reorder_categories, db, body.categories)

@app.patch("/api/categories/{category_id}", response_model=CategoryResponse)
async def update_category(category_id: str, body: CategoryUpdate,
                          user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    category_id = validate_uuid(category_id, "category_id")
    updated = await _run(categories.update_category, db, category_id, body)
    logger.info("Admin %s updated category %s", user["email"], category_id)
    return updated

@app.patch("/api/categories/{category_id}/toggle", response_model=CategoryResponse)
async def toggle_category(category_id: str, user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    category_id = validate_uuid(category_id, "category_id")
    toggled = await _run(categories.toggle_category, db, category_id)
    logger.info("Admin %s set category %s active=%s", user["email"], category_id, toggled.is_active)
    return toggled

@app.delete("/api/categories/{category_id}")
async def delete_category(category_id: str, user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    category_id = validate_uuid(category_id, "category_id")
    await _run(categories.delete_category, db, category_id)
    logger.info("Admin %s deleted category %s", user["email"], category_id)
    return {"detail": "Category deleted"}

# ---------------------------------------------------------------------------
# USER ENDPOINTS
# ---------------------------------------------------------------------------
@app.patch("/api/users/profile", response_model=UserResponse)
async def update_profile(body: ProfileUpdate, user=Depends(get_current_user), db=Depends(get_db)):
    set_fields = body.model_dump(exclude_none=True)
    if not set_fields:
        raise ValidationFailed("No fields to update")
    set_fields["updated_at"] = now_utc()
    await _run(lambda: db.users.update_one({"_id": user["_id"]}, {"$set": set_fields}))
    updated = await _run(db.users.find_one, {"_id": user["_id"]})
    return user_to_response(updated)

@app.patch("/api/users/password")
async def change_password(body: PasswordChange, user=Depends(get_current_user), db=Depends(get_db)):
    if not verify_password(body.current_password, user["hashed_password"]):
        raise ValidationFailed("Current password is incorrect")
    hashed = hash_password(body.new_password)
    await _run(lambda: db.users.update_one(
        {"_id": user["_id"]}, {"$set": {"hashed_password": hashed, "updated_at": now_utc()}}))
    return {"detail": "Password updated successfully"}

@app.get("/api/users/complaints", response_model=ComplaintListResponse)
async def my_complaints(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                        user=Depends(get_current_user), db=Depends(get_db)):
    result = await _run(lambda: lifecycle.list_complaints(
        db, submitted_by=str(user["_id"]), page=page, limit=limit))
    result["complaints"] = [lifecycle.complaint_to_response(c, str(user["_id"])) for c in result["complaints"]]
    return ComplaintListResponse(**result)

@app.get("/api/users/officials", response_model=List[UserResponse])
async def list_officials(user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    officials = await _run(lambda: list(db.users.find({"role": OFFICIAL}).sort("name", 1)))
    return [user_to_response(o) for o in officials]

@app.post("/api/users/officials", response_model=UserResponse, status_code=201)
async def create_official(body: OfficialCreate, user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    doc = new_user_doc(body.name, body.email, body.password, UserRole.OFFICIAL,
                       phone=body.phone, department=body.department)
    await _run(_insert_user, db, doc)
    logger.info("Admin %s created official %s (%s)", user["email"], doc["email"], body.department)
    return user_to_response(doc)

# ---------------------------------------------------------------------------
# ADMIN ENDPOINTS
# ---------------------------------------------------------------------------
@app.get("/api/admin/stats", response_model=AdminDashboard)
async def admin_stats(user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    return await _run(reporting.admin_dashboard, db)

@app.get("/api/admin/users", response_model=List[UserResponse])
async def admin_list_users(role: Optional[UserRole] = None,
                           user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    query = {"role": role.value} if role else {}
    users = await _run(lambda: list(db.users.find(query).sort("created_at", -1)))
    return [user_to_response(u) for u in users]

@app.put("/api/admin/users/{user_id}/role", response_model=UserResponse)
async def admin_update_role(user_id: str, body: RoleUpdate,
                            user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    user_id = validate_uuid(user_id, "user_id")
    if str(user["_id"]) == user_id:
        raise ValidationFailed("Cannot change your own role")
    result = await _run(lambda: db.users.update_one(
        {"_id": user_id}, {"$set": {"role": body.role.value, "updated_at": now_utc()}}))
    if result.matched_count == 0:
        raise NotFound("User not found")
    updated = await _run(db.users.find_one, {"_id": user_id})
    logger.info("Admin %s set role of %s to %s", user["email"], updated["email"], body.role.value)
    return user_to_response(updated)

@app.delete("/api/admin/users/{user_id}")
async def admin_delete_user(user_id: str, user=Depends(require_role(ADMIN)), db=Depends(get_db)):
    user_id = validate_uuid(user_id, "user_id")
    if str(user["_id"]) == user_id:
        raise ValidationFailed("Cannot delete your own account")
    target = await _run(db.users.find_one, {"_id": user_id})
    if not target:
        raise NotFound("User not found")
    await _run(db.users.delete_one, {"_id": user_id})
    logger.info("Admin %s deleted user %s", user["email"], target["email"])
    return {"detail": f"User '{target['email']}' deleted"}

# ---------------------------------------------------------------------------
# HEALTH
# ---------------------------------------------------------------------------
@app.get("/api/health")
async def health():
    return {"status": "healthy", "system": "NyayChain Grievance Platform",
            "timestamp": now_utc().isoformat()}


if __name__ == "__main__":
    uvicorn.run("nyaychain.app:app", host="0.0.0.0", port=8000)
