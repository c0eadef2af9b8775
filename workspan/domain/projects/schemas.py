"""Project domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_email, validate_person_name, validate_project_name
from ..milestones.schemas import MilestoneResponse

PROJECT_TYPES = (
    "Web Development",
    "Mobile Development",
    "UI/UX Design",
    "Branding",
    "Digital Marketing",
    "E-commerce",
    "Custom Software",
    "Other",
)

MIN_MILESTONE_TOTAL = 100


class MilestoneCreate(BaseModel):
    """One milestone in a new project's plan"""

    name: str = Field(..., min_length=3, max_length=100)
    duration_days: int = Field(..., ge=1, le=90)
    milestone_price: float = Field(..., ge=50, le=100000)
    description: Optional[str] = Field(None, max_length=500)
    free_revisions: int = Field(0, ge=0)
    revision_rate: float = Field(0, ge=0, le=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Milestone name must be at least 3 characters")
        return v


class ProjectCreate(BaseModel):
    """Schema for creating a project together with its milestones"""

    name: str = Field(..., min_length=3, max_length=100)
    type: str
    description: str = Field(..., min_length=10, max_length=1000)
    project_budget: float = Field(..., ge=100, le=1000000)
    estimated_days: int = Field(..., ge=1, le=365)
    client_name: str = Field(..., min_length=2, max_length=50)
    client_email: str = Field(..., max_length=100)
    milestones: list[MilestoneCreate] = Field(..., min_length=1, max_length=10)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return validate_project_name(v)

    @field_validator("type")
    @classmethod
    def check_type(cls, v: str) -> str:
        if v not in PROJECT_TYPES:
            raise ValueError(f"Project type must be one of: {', '.join(PROJECT_TYPES)}")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @field_validator("client_name")
    @classmethod
    def check_client_name(cls, v: str) -> str:
        return validate_person_name(v)

    @field_validator("client_email")
    @classmethod
    def check_client_email(cls, v: str) -> str:
        return validate_email(v)


class MilestoneCounts(BaseModel):
    total: int = 0
    not_started: int = 0
    in_progress: int = 0
    submitted: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0


class ProjectSummary(BaseModel):
    """Row on the agency dashboard"""

    id: str
    name: str
    type: str
    status: str
    client_name: str
    client_email: str
    project_price: float
    project_duration_days: int
    created_at: Optional[datetime] = None
    milestones: MilestoneCounts
    average_rating: Optional[float] = None
    total_reviews: int = 0


class AttachmentResponse(BaseModel):
    id: str
    file_keys: list[str]
    file_urls: list[str]
    file_name: Optional[str] = None
    submission_status: str
    submission_notes: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MilestoneDetail(MilestoneResponse):
    media_attachments: list[AttachmentResponse] = []


class ReviewSummary(BaseModel):
    id: str
    milestone_id: Optional[str] = None
    stars: int
    review: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectDetail(BaseModel):
    """Schema for project detail response"""

    id: str
    agency_id: str
    name: str
    type: str
    description: Optional[str]
    client_name: str
    client_email: str
    project_price: float
    project_duration_days: int
    status: str
    current_milestone_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    milestones: list[MilestoneDetail] = []
    reviews: list[ReviewSummary] = []

    class Config:
        from_attributes = True
