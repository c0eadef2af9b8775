import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a UUID primary key (ids are exposed to the client portal)"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    projects = relationship("Project", back_populates="agency")


class Project(Base):
    __tablename__ = "project"

    id = Column(String(36), primary_key=True, default=generate_id)
    agency_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)

    # Client identity - the client signs in with this email to review milestones
    client_name = Column(String(50), nullable=False)
    client_email = Column(String(100), nullable=False, index=True)

    # Budget ceiling at creation; grows only by revision surcharges afterwards
    project_price = Column(Float, nullable=False)
    project_duration_days = Column(Integer, nullable=False)

    # Status workflow: pending → in_progress → completed (or cancelled)
    status = Column(String(20), default="pending", nullable=False, index=True)
    current_milestone_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    agency = relationship("User", back_populates="projects")
    milestones = relationship(
        "Milestone",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Milestone.priority",
    )
    reviews = relationship("Review", back_populates="project", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="project", cascade="all, delete-orphan")
    activities = relationship(
        "ProjectActivity", back_populates="project", cascade="all, delete-orphan"
    )


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(String(36), primary_key=True, default=generate_id)
    project_id = Column(String(36), ForeignKey("project.id"), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Integer, nullable=False, default=1)  # 1-based order within project

    # Status workflow: not_started → in_progress → submitted → approved | rejected
    # rejected milestones are resubmitted; approved ones are archived
    status = Column(String(20), default="not_started", nullable=False, index=True)
    is_archived = Column(Boolean, default=False, nullable=False)

    # Pricing
    milestone_price = Column(Float, nullable=False)
    duration_days = Column(Integer, nullable=False)
    free_revisions = Column(Integer, default=0, nullable=False)
    used_revisions = Column(Integer, default=0, nullable=False)
    revision_rate = Column(Float, default=0, nullable=False)  # % surcharge once free revisions run out

    # Notes and tracking
    starting_notes = Column(Text, nullable=True)
    submission_notes = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="milestones")
    media_attachments = relationship(
        "MediaAttachment", back_populates="milestone", cascade="all, delete-orphan"
    )


class MediaAttachment(Base):
    """Files delivered with a milestone submission (stored by the upload service)"""

    __tablename__ = "media_attachments"

    id = Column(String(36), primary_key=True, default=generate_id)
    project_id = Column(String(36), ForeignKey("project.id"), nullable=False, index=True)
    milestone_id = Column(String(36), ForeignKey("milestones.id"), nullable=False, index=True)
    uploaded_by = Column(String(36), ForeignKey("users.id"), nullable=True)

    file_keys = Column(JSON, default=list, nullable=False)  # object storage keys
    file_urls = Column(JSON, default=list, nullable=False)
    file_name = Column(String(255), nullable=True)

    submission_status = Column(String(20), default="submitted", nullable=False)  # submitted, rejected
    submission_notes = Column(Text, nullable=True)
    uploaded_at = Column(DateTime, server_default=func.now())

    milestone = relationship("Milestone", back_populates="media_attachments")


class Message(Base):
    """Project conversation thread between agency and client"""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_id)
    project_id = Column(String(36), ForeignKey("project.id"), nullable=False, index=True)
    milestone_id = Column(String(36), ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(20), nullable=False)  # rejection, note
    content = Column(Text, nullable=False)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    project = relationship("Project", back_populates="messages")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("project_id", "milestone_id", name="uq_reviews_project_milestone"),
        # NULL milestone_ids never collide in a plain unique constraint
        Index(
            "uq_reviews_project_level",
            "project_id",
            unique=True,
            sqlite_where=text("milestone_id IS NULL"),
            postgresql_where=text("milestone_id IS NULL"),
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    project_id = Column(String(36), ForeignKey("project.id"), nullable=False, index=True)
    milestone_id = Column(String(36), ForeignKey("milestones.id", ondelete="CASCADE"), nullable=True)
    stars = Column(Integer, nullable=False)
    review = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    project = relationship("Project", back_populates="reviews")


class ProjectActivity(Base):
    """Audit trail, written by the background worker"""

    __tablename__ = "project_activities"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(36), ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id = Column(String(36), nullable=True)
    activity_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    performed_by = Column(String(36), nullable=True)
    activity_metadata = Column("metadata", JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    project = relationship("Project", back_populates="activities")
