"""Milestone domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .lifecycle import MilestoneStatus

# Fields a PATCH may clear by sending an explicit null
NULLABLE_UPDATE_FIELDS = frozenset({"description"})


class RejectMilestoneRequest(BaseModel):
    """Client rejects a submitted milestone"""

    projectId: str
    revisionNotes: str = Field(..., max_length=1000)

    @field_validator("revisionNotes")
    @classmethod
    def notes_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Revision notes are required for rejection")
        return v.strip()


class MilestoneUpdate(BaseModel):
    """
    Partial update. A field left out of the request is "not provided"; a field
    sent as null is an explicit clear. `provided_fields()` keeps that
    distinction, so no None-means-missing guessing happens downstream.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    duration_days: Optional[int] = Field(None, gt=0)
    milestone_price: Optional[float] = Field(None, gt=0)
    free_revisions: Optional[int] = Field(None, ge=0)
    revision_rate: Optional[float] = Field(None, ge=0, le=100)
    status: Optional[MilestoneStatus] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Milestone title cannot be blank")
        return v

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v

    @model_validator(mode="after")
    def only_nullable_fields_cleared(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in NULLABLE_UPDATE_FIELDS:
                raise ValueError(f"{name} cannot be null")
        return self

    def provided_fields(self) -> dict[str, Any]:
        values = self.model_dump(exclude_unset=True)
        if "status" in values and values["status"] is not None:
            values["status"] = values["status"].value
        return values


class AttachmentIn(BaseModel):
    """A file already uploaded to object storage"""

    fileKey: str = Field(..., min_length=1, max_length=500)
    fileName: str = Field(..., min_length=1, max_length=255)
    url: Optional[str] = Field(None, max_length=2000)


class SubmitMilestoneRequest(BaseModel):
    projectId: str
    submissionNotes: str = Field(..., max_length=2000)
    attachments: list[AttachmentIn] = Field(default_factory=list, max_length=10)

    @field_validator("submissionNotes")
    @classmethod
    def notes_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Submission notes are required")
        return v.strip()


class StartMilestoneRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class MilestoneResponse(BaseModel):
    """Schema for milestone response"""

    id: str
    project_id: str
    title: str
    description: Optional[str]
    priority: int
    status: str
    is_archived: bool
    milestone_price: float
    duration_days: int
    free_revisions: int
    used_revisions: int
    revision_rate: float
    submission_notes: Optional[str] = None
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
