"""Milestone repository - Database operations for milestones"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import MediaAttachment, Message, Milestone, Project


class MilestoneRepository:
    """Repository for milestone database operations.

    Nothing here commits; callers run these inside `database.transaction`.
    """

    @staticmethod
    def get_milestone_for_update(db: Session, milestone_id: str) -> Optional[Milestone]:
        """Get a milestone, locking the row for the rest of the transaction"""
        return db.query(Milestone).filter(Milestone.id == milestone_id).with_for_update().first()

    @staticmethod
    def get_milestone_in_project(
        db: Session, milestone_id: str, project_id: str
    ) -> Optional[Milestone]:
        """Get a milestone only if it belongs to the given project"""
        return (
            db.query(Milestone)
            .filter(Milestone.id == milestone_id, Milestone.project_id == project_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def get_project_for_update(db: Session, project_id: str) -> Optional[Project]:
        """Get the parent project with its current price, locked"""
        return db.query(Project).filter(Project.id == project_id).with_for_update().first()

    @staticmethod
    def get_project_milestones(db: Session, project_id: str) -> list[Milestone]:
        return (
            db.query(Milestone)
            .filter(Milestone.project_id == project_id)
            .order_by(Milestone.priority)
            .all()
        )

    @staticmethod
    def get_project_statuses(db: Session, project_id: str) -> list[str]:
        """Statuses of every milestone in the project, read after any pending writes"""
        db.flush()
        rows = db.query(Milestone.status).filter(Milestone.project_id == project_id).all()
        return [row[0] for row in rows]

    @staticmethod
    def sum_sibling_figures(db: Session, project_id: str, exclude_id: str) -> tuple[float, int]:
        """Live price and duration totals of the other milestones in the project"""
        price_total, duration_total = (
            db.query(
                func.coalesce(func.sum(Milestone.milestone_price), 0),
                func.coalesce(func.sum(Milestone.duration_days), 0),
            )
            .filter(Milestone.project_id == project_id, Milestone.id != exclude_id)
            .one()
        )
        return float(price_total), int(duration_total)

    @staticmethod
    def mark_approved(db: Session, milestone_id: str, expected_status: str, now: datetime) -> int:
        """
        Approve and archive, guarded by the status read earlier in the
        transaction. Returns affected row count.
        """
        return (
            db.query(Milestone)
            .filter(Milestone.id == milestone_id, Milestone.status == expected_status)
            .update(
                {"status": "approved", "is_archived": True, "updated_at": now},
                synchronize_session="fetch",
            )
        )

    @staticmethod
    def mark_rejected(
        db: Session, milestone_id: str, new_price: float, now: datetime
    ) -> int:
        """Reject, consume one revision and apply the new price"""
        return (
            db.query(Milestone)
            .filter(Milestone.id == milestone_id, Milestone.status == "submitted")
            .update(
                {
                    "status": "rejected",
                    "used_revisions": Milestone.used_revisions + 1,
                    "milestone_price": new_price,
                    "updated_at": now,
                },
                synchronize_session="fetch",
            )
        )

    @staticmethod
    def reject_media_attachments(
        db: Session, milestone_id: str, project_id: str, notes: str
    ) -> int:
        """Flip every attachment of this submission to rejected"""
        return (
            db.query(MediaAttachment)
            .filter(
                MediaAttachment.milestone_id == milestone_id,
                MediaAttachment.project_id == project_id,
            )
            .update(
                {"submission_status": "rejected", "submission_notes": notes},
                synchronize_session="fetch",
            )
        )

    @staticmethod
    def add_media_attachment(db: Session, **attachment_data) -> MediaAttachment:
        attachment = MediaAttachment(**attachment_data)
        db.add(attachment)
        return attachment

    @staticmethod
    def add_message(db: Session, **message_data) -> Message:
        message = Message(**message_data)
        db.add(message)
        return message

    @staticmethod
    def update_milestone(db: Session, milestone: Milestone, **updates: Any) -> Milestone:
        """Apply exactly the given fields (None is a legitimate value here)"""
        for key, value in updates.items():
            setattr(milestone, key, value)
        db.flush()
        return milestone

    @staticmethod
    def delete_milestone(db: Session, milestone: Milestone) -> None:
        db.delete(milestone)
        db.flush()

