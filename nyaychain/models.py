# Enums, request bodies and response records for the NyayChain API

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ComplaintStatus(str, Enum):
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"

class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

class UserRole(str, Enum):
    CITIZEN = "citizen"
    OFFICIAL = "official"
    ADMIN = "admin"


def _lower_email(v: str) -> str:
    return v.strip().lower()


# ---------------------------------------------------------------------------
# Users & auth
# ---------------------------------------------------------------------------
class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _lower_email(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()

class OfficialCreate(UserCreate):
    department: str = Field(..., min_length=1, max_length=200)

class UserLogin(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        return _lower_email(v)

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    bio: Optional[str] = Field(None, max_length=2000)

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6, max_length=72)

class RoleUpdate(BaseModel):
    role: UserRole

class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    department: Optional[str] = None
    created_at: datetime

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ---------------------------------------------------------------------------
# Complaints
# ---------------------------------------------------------------------------
class Location(BaseModel):
    type: str = "Point"
    coordinates: List[float]
    address: str

class StatusUpdateEntry(BaseModel):
    id: str
    status: ComplaintStatus
    updated_by: Optional[str] = None
    note: Optional[str] = None
    timestamp: datetime

class CommentEntry(BaseModel):
    id: str
    user: str
    role: UserRole
    text: str
    created_at: datetime

class ComplaintResponse(BaseModel):
    id: str
    title: str
    description: str
    category: str
    location: Location
    images: List[str] = Field(default_factory=list)
    status: ComplaintStatus
    submitted_by: str
    assigned_to: Optional[str] = None
    department: Optional[str] = None
    priority: Priority
    status_updates: List[StatusUpdateEntry]
    comments: List[CommentEntry] = Field(default_factory=list)
    upvotes: List[str] = Field(default_factory=list)
    upvote_count: int = 0
    has_upvoted: bool = False
    resolution_time: Optional[int] = None
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    blockchain_timestamp: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

class ComplaintListResponse(BaseModel):
    total: int
    page: int
    pages: int
    limit: int
    complaints: List[ComplaintResponse]

class StatusChangeRequest(BaseModel):
    status: ComplaintStatus
    note: Optional[str] = Field(None, max_length=2000)

class AssignmentRequest(BaseModel):
    official_id: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1, max_length=200)
    priority: Optional[Priority] = None
    note: Optional[str] = Field(None, max_length=2000)

class CommentCreate(BaseModel):
    text: str = Field(..., max_length=5000)

class UpvoteResult(BaseModel):
    upvotes: int
    has_upvoted: bool

class LedgerVerification(BaseModel):
    complaint_id: str
    transaction_hash: str
    block_number: int
    verified: bool
    confirmations: int
    explorer_url: str
    recorded_at: datetime


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    icon: str = "FileText"
    color: str = "#3b82f6"
    order: int = 0

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    icon: Optional[str] = None
    color: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None

class CategoryOrder(BaseModel):
    id: str
    order: int

class CategoryReorder(BaseModel):
    categories: List[CategoryOrder]

class CategoryResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    icon: str
    color: str
    is_active: bool
    order: int
    created_at: datetime


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
class SummaryReport(BaseModel):
    total_complaints: int
    pending: int
    acknowledged: int
    in_progress: int
    resolved: int
    rejected: int
    avg_resolution_time: int
    avg_response_time: int
    response_rate: int
    citizen_count: int

class CategoryStat(BaseModel):
    name: str
    total: int
    resolved: int
    pending: int
    in_progress: int
    avg_resolution_time: int
    resolution_rate: int

class TimeSeriesDataset(BaseModel):
    name: str
    data: List[int]

class TimeSeriesReport(BaseModel):
    labels: List[str]
    datasets: List[TimeSeriesDataset]

class MapPoint(BaseModel):
    id: str
    title: str
    category: str
    status: ComplaintStatus
    coordinates: List[float]
    upvotes: int
    priority: Priority
    created_at: datetime

class RecentComplaint(BaseModel):
    id: str
    title: str
    category: str
    status: ComplaintStatus
    location: str
    time_ago: str
    priority: Priority

class TopCategory(BaseModel):
    name: str
    count: int

class LiveStats(BaseModel):
    total_complaints: int
    pending_complaints: int
    resolved_complaints: int
    in_progress_complaints: int
    today_complaints: int
    active_citizens: int
    response_rate: int
    recent_complaints: List[RecentComplaint]
    top_categories: List[TopCategory]
    last_updated: datetime

class AdminDashboard(BaseModel):
    users_by_role: dict
    complaints_by_status: dict
    total_users: int
    total_complaints: int
    recent_complaints: List[ComplaintResponse]
