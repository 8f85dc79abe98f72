"""
Pydantic models for civic reports and their status history.
These models handle validation for report submission and responses.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from enum import Enum


class ReportStatus(str, Enum):
    """
    Report lifecycle states, in order.

    open → acknowledged → in_progress → resolved → closed
    """
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ReportCategory(str, Enum):
    POTHOLE = "pothole"
    STREETLIGHT = "streetlight"
    WATER = "water"
    GARBAGE = "garbage"
    DRAINAGE = "drainage"
    TRAFFIC = "traffic"
    PARK = "park"
    OTHER = "other"


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReportCreate(BaseModel):
    """
    Model for creating a new report (incoming POST request).
    These are the fields citizens provide when submitting a report.
    """
    category: ReportCategory = Field(..., description="Issue category")
    title: str = Field(..., min_length=3, max_length=200, description="Short issue title")
    description: str = Field(..., min_length=5, max_length=2000, description="What the citizen observed")
    location_text: str = Field(..., min_length=1, max_length=500, description="Street address or landmark")
    priority: PriorityLevel = Field(default=PriorityLevel.MEDIUM, description="Citizen-suggested priority")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    image_urls: List[str] = Field(default_factory=list, description="Image URLs, stored as given")

    class Config:
        json_schema_extra = {
            "example": {
                "category": "pothole",
                "title": "Pothole on MG Road",
                "description": "Deep pothole in the left lane near City Mall.",
                "location_text": "MG Road, near City Mall",
                "priority": "high",
                "latitude": 18.5074,
                "longitude": 73.8077,
            }
        }
        extra = "ignore"


class Report(BaseModel):
    """
    One civic complaint as persisted in the store.

    ``id``, ``report_number`` and ``owner_id`` never change after creation.
    """
    id: str = Field(..., description="Store document ID")
    report_number: str = Field(..., description="Human-readable unique report number")
    owner_id: str = Field(..., description="User ID of the submitter")
    category: ReportCategory
    title: str
    description: str
    location_text: str
    priority: PriorityLevel = PriorityLevel.MEDIUM
    status: ReportStatus = ReportStatus.OPEN
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image_urls: List[str] = Field(default_factory=list)
    assigned_department: Optional[str] = None
    assigned_officer_id: Optional[str] = None
    citizen_rating: Optional[int] = Field(None, ge=1, le=5)
    citizen_feedback: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_rated(self) -> bool:
        return self.citizen_rating is not None


class ReportUpdate(BaseModel):
    """Append-only history entry; one per accepted status transition."""
    id: str
    report_id: str
    status: ReportStatus = Field(..., description="Status the report moved to")
    message: str
    internal_notes: Optional[str] = Field(None, description="Staff-only notes")
    updated_by: str = Field(..., description="Acting user ID")
    created_at: datetime

    def redacted(self) -> "ReportUpdate":
        return self.model_copy(update={"internal_notes": None})


class StatusUpdateRequest(BaseModel):
    """Request to move a report to its next lifecycle state."""
    status: ReportStatus = Field(..., description="New status value")
    message: str = Field(..., min_length=1, max_length=1000, description="Public update message")
    internal_notes: Optional[str] = Field(None, max_length=2000, description="Staff-only notes")


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5, description="Satisfaction rating 1-5")
    feedback: Optional[str] = Field(None, max_length=1000)


class PriorityUpdateRequest(BaseModel):
    priority: PriorityLevel


class AssignmentRequest(BaseModel):
    assigned_department: Optional[str] = Field(None, max_length=200)
    assigned_officer_id: Optional[str] = Field(None, max_length=128)


class ReportStats(BaseModel):
    """Dashboard counters over the reports visible to the caller."""
    total: int = 0
    open: int = 0
    acknowledged: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0
    urgent: int = 0
