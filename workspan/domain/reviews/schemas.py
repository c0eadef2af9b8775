"""Review domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ReviewCreate(BaseModel):
    """Client feedback on a project or one of its milestones"""

    review: str = Field(..., max_length=2000)
    rating: int = Field(..., ge=1, le=5)
    milestoneId: Optional[str] = None

    @field_validator("review")
    @classmethod
    def review_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 10:
            raise ValueError("Review must be at least 10 characters")
        return v


class ReviewResponse(BaseModel):
    """Schema for review response"""

    id: str
    project_id: str
    milestone_id: Optional[str] = None
    stars: int
    review: str
    created_at: Optional[datetime] = None
    project_name: Optional[str] = None
    client_name: Optional[str] = None
    milestone_title: Optional[str] = None


class ReviewStats(BaseModel):
    total: int
    averageRating: Optional[float] = None
    distribution: dict[int, int]
