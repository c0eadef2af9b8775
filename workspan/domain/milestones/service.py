"""Milestone service - Business logic for the milestone lifecycle"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...activity import ActivityEvent
from ...config import ENFORCE_SEQUENTIAL_MILESTONES
from ...database import transaction
from ...models import Milestone, Project, User
from ...shared.access import is_owner, is_participant, require_id
from ...shared.errors import (
    BudgetExceeded,
    DurationExceeded,
    Forbidden,
    NotFound,
    ServerFault,
    StateConflict,
)
from ...utils.sanitization import sanitize_string
from .lifecycle import (
    STARTABLE_PROJECT_STATUSES,
    MilestoneAction,
    MilestoneStatus,
    ProjectStatus,
    blocking_milestones,
    count_milestones,
    exceeds_ceiling,
    quote_revision,
    transition,
)
from .repository import MilestoneRepository
from .schemas import (
    MilestoneResponse,
    MilestoneUpdate,
    RejectMilestoneRequest,
    StartMilestoneRequest,
    SubmitMilestoneRequest,
)

logger = logging.getLogger(__name__)

# Free-text fields, HTML-escaped on write
TEXT_FIELDS = frozenset({"title", "description"})


def serialize_milestone(milestone: Milestone) -> dict[str, Any]:
    return MilestoneResponse.model_validate(milestone).model_dump(mode="json")


class MilestoneService:
    """Service layer for milestone state transitions.

    Every public operation is a single transaction. Activity events are only
    exposed through `self.activities` once that transaction has committed.
    """

    def __init__(self, db: Session, enforce_sequential: bool = ENFORCE_SEQUENTIAL_MILESTONES):
        self.db = db
        self.repo = MilestoneRepository()
        self.enforce_sequential = enforce_sequential
        self.activities: list[ActivityEvent] = []

    # ------------------------------------------------------------------
    # lookups shared by every operation
    # ------------------------------------------------------------------

    def _load(self, milestone_id: str, project_id: Optional[str] = None) -> tuple[Milestone, Project]:
        if project_id is None:
            milestone = self.repo.get_milestone_for_update(self.db, milestone_id)
            if not milestone:
                raise NotFound("Milestone not found")
        else:
            milestone = self.repo.get_milestone_in_project(self.db, milestone_id, project_id)
            if not milestone:
                raise NotFound("Milestone not found or does not belong to the specified project")

        project = self.repo.get_project_for_update(self.db, milestone.project_id)
        if not project:
            raise NotFound("Project not found")
        return milestone, project

    @staticmethod
    def _require_owner(project: Project, user: User) -> None:
        if not is_owner(project, user):
            logger.warning(f"⚠️ User {user.id} is not the owner of project {project.id}")
            raise Forbidden("Unauthorized access to milestone")

    @staticmethod
    def _require_participant(project: Project, user: User) -> None:
        if not is_participant(project, user):
            logger.warning(f"⚠️ User {user.id} is not a participant of project {project.id}")
            raise Forbidden("Unauthorized access to milestone")

    # ------------------------------------------------------------------
    # approve
    # ------------------------------------------------------------------

    def approve_milestone(self, milestone_id: str, user: User) -> dict:
        """Approve a submitted milestone and complete the project when it was the last one"""
        require_id(milestone_id, "milestoneId")
        now = datetime.utcnow()

        with transaction(self.db):
            milestone, project = self._load(milestone_id)
            self._require_participant(project, user)

            previous_status = milestone.status
            transition(previous_status, MilestoneAction.APPROVE)

            if not self.repo.mark_approved(self.db, milestone.id, previous_status, now):
                logger.error(f"❌ Approval of milestone {milestone.id} touched no rows")
                raise ServerFault("Milestone approval failed")

            counts = count_milestones(self.repo.get_project_statuses(self.db, project.id))
            project_updated = False
            if counts.project_completed and project.status != ProjectStatus.COMPLETED.value:
                project.status = ProjectStatus.COMPLETED.value
                project.updated_at = now
                project_updated = True

            self.db.flush()
            self.db.refresh(milestone)
            milestone_data = serialize_milestone(milestone)

        logger.info(
            f"✅ Milestone {milestone_id} approved ({counts.approved}/{counts.total}, "
            f"project completed: {project_updated})"
        )
        self.activities.append(
            ActivityEvent(
                project_id=project.id,
                milestone_id=milestone_id,
                activity_type="milestone_approved",
                description=f'Milestone "{milestone.title}" approved',
                performed_by=user.id,
                metadata={
                    "previous_status": previous_status,
                    "new_status": MilestoneStatus.APPROVED.value,
                    "project_completed": project_updated,
                },
            )
        )

        return {
            "success": True,
            "message": "Milestone approved successfully",
            "data": {
                "milestone": milestone_data,
                "projectUpdated": project_updated,
                "milestones": counts.as_dict(),
            },
        }

    # ------------------------------------------------------------------
    # reject
    # ------------------------------------------------------------------

    def reject_milestone(self, milestone_id: str, data: RejectMilestoneRequest, user: User) -> dict:
        """Reject a submitted milestone, charging for the revision once free ones run out"""
        require_id(milestone_id, "milestoneId")
        require_id(data.projectId, "projectId")
        now = datetime.utcnow()
        notes = sanitize_string(data.revisionNotes)

        with transaction(self.db):
            milestone, project = self._load(milestone_id, data.projectId)
            self._require_participant(project, user)

            transition(milestone.status, MilestoneAction.REJECT)

            used_before = milestone.used_revisions
            quote = quote_revision(
                milestone_price=milestone.milestone_price,
                project_price=project.project_price,
                used_revisions=used_before,
                free_revisions=milestone.free_revisions,
                revision_rate=milestone.revision_rate,
            )

            if not self.repo.mark_rejected(self.db, milestone.id, quote.new_milestone_price, now):
                logger.error(f"❌ Rejection of milestone {milestone.id} touched no rows")
                raise ServerFault("Failed to update milestone")

            attachments_updated = self.repo.reject_media_attachments(
                self.db, milestone.id, project.id, notes
            )
            self.repo.add_message(
                self.db,
                project_id=project.id,
                milestone_id=milestone.id,
                type="rejection",
                content=notes,
                created_by=user.id,
            )

            if quote.revision_charge > 0:
                project.project_price = quote.new_project_price
                project.updated_at = now

        logger.info(
            f"↩️ Milestone {milestone_id} rejected (free: {quote.has_free_revisions}, "
            f"charge: {quote.revision_charge})"
        )
        self.activities.append(
            ActivityEvent(
                project_id=project.id,
                milestone_id=milestone_id,
                activity_type="milestone_rejected",
                description=f'Milestone "{milestone.title}" rejected with revision notes',
                performed_by=user.id,
                metadata={
                    "previous_status": MilestoneStatus.SUBMITTED.value,
                    "new_status": MilestoneStatus.REJECTED.value,
                    "revision_notes": notes,
                    "has_free_revisions": quote.has_free_revisions,
                    "revision_charge": quote.revision_charge,
                    "new_milestone_price": quote.new_milestone_price,
                    "new_project_price": quote.new_project_price,
                    "used_revisions": used_before + 1,
                    "free_revisions": milestone.free_revisions,
                },
            )
        )

        return {
            "success": True,
            "message": "Milestone rejected successfully",
            "data": {
                "hasFreeRevisions": quote.has_free_revisions,
                "revisionCharge": quote.revision_charge,
                "newMilestonePrice": quote.new_milestone_price,
                "newProjectPrice": quote.new_project_price,
                "mediaAttachmentsUpdated": attachments_updated,
            },
        }

    # ------------------------------------------------------------------
    # update
    # ------------------------------------------------------------------

    def update_milestone(self, milestone_id: str, data: MilestoneUpdate, user: User) -> dict:
        """Edit a milestone that has not started yet, within the project's budget and timeline"""
        require_id(milestone_id, "milestoneId")
        now = datetime.utcnow()

        provided = data.provided_fields()

        with transaction(self.db):
            milestone, project = self._load(milestone_id)
            self._require_owner(project, user)
            transition(milestone.status, MilestoneAction.UPDATE)

            changes = self._diff(milestone, provided)

            if "status" in changes:
                raise StateConflict(
                    "Milestone status can only change through start, submit, approve or reject",
                    {"current_status": milestone.status, "requested_status": changes["status"]},
                )

            if not changes:
                logger.info(f"ℹ️ No changes detected for milestone {milestone_id}")
                return {
                    "success": True,
                    "message": "No changes detected",
                    "data": {"milestone": serialize_milestone(milestone)},
                }

            if "milestone_price" in changes or "duration_days" in changes:
                self._check_ceilings(milestone, project, changes)

            previous_values = {key: getattr(milestone, key) for key in changes}
            self.repo.update_milestone(self.db, milestone, updated_at=now, **changes)

        logger.info(f"✏️ Milestone {milestone_id} updated: {sorted(changes)}")
        self.activities.append(
            ActivityEvent(
                project_id=project.id,
                milestone_id=milestone_id,
                activity_type="milestone_updated",
                description=f'Milestone "{milestone.title}" updated',
                performed_by=user.id,
                metadata={
                    "updated_fields": sorted(changes),
                    "previous_values": previous_values,
                    "new_values": changes,
                },
            )
        )

        return {"success": True, "message": "Milestone updated successfully"}

    @staticmethod
    def _diff(milestone: Milestone, provided: dict[str, Any]) -> dict[str, Any]:
        """
        Fields whose value would actually change. Text is stored escaped, so a
        client echoing back the escaped value it was shown is not a change.
        """
        changes = {}
        for key, value in provided.items():
            current = getattr(milestone, key)
            if value == current:
                continue
            if key in TEXT_FIELDS and value is not None:
                value = sanitize_string(value)
                if value == current:
                    continue
            changes[key] = value
        return changes

    def _check_ceilings(self, milestone: Milestone, project: Project, changes: dict) -> None:
        price_total, duration_total = self.repo.sum_sibling_figures(
            self.db, project.id, milestone.id
        )

        if "milestone_price" in changes:
            new_price = changes["milestone_price"]
            if exceeds_ceiling(price_total, new_price, project.project_price):
                logger.warning(f"⚠️ Milestone {milestone.id} price {new_price} exceeds project budget")
                raise BudgetExceeded(
                    "Milestone price update would exceed project budget",
                    {
                        "current_project_budget": project.project_price,
                        "proposed_total": round(price_total + new_price, 2),
                        "available_budget": round(project.project_price - price_total, 2),
                        "current_milestone_price": milestone.milestone_price,
                        "new_milestone_price": new_price,
                    },
                )

        if "duration_days" in changes:
            new_duration = changes["duration_days"]
            if exceeds_ceiling(duration_total, new_duration, project.project_duration_days):
                logger.warning(
                    f"⚠️ Milestone {milestone.id} duration {new_duration} exceeds project timeline"
                )
                raise DurationExceeded(
                    "Milestone duration update would exceed project timeline",
                    {
                        "current_project_duration": project.project_duration_days,
                        "proposed_total_days": duration_total + new_duration,
                        "available_days": project.project_duration_days - duration_total,
                        "current_milestone_duration": milestone.duration_days,
                        "new_milestone_duration": new_duration,
                    },
                )

    # ------------------------------------------------------------------
    # start / submit / delete
    # ------------------------------------------------------------------

    def start_milestone(self, milestone_id: str, data: StartMilestoneRequest, user: User) -> dict:
        require_id(milestone_id, "milestoneId")
        now = datetime.utcnow()

        with transaction(self.db):
            milestone, project = self._load(milestone_id)
            self._require_owner(project, user)

            if project.status not in {s.value for s in STARTABLE_PROJECT_STATUSES}:
                raise StateConflict(
                    "Project is not active",
                    {"project_status": project.status},
                )

            transition(milestone.status, MilestoneAction.START)

            if self.enforce_sequential:
                siblings = self.repo.get_project_milestones(self.db, project.id)
                blocking = blocking_milestones(milestone.priority, siblings)
                if blocking:
                    raise StateConflict(
                        "Previous milestones not completed",
                        {
                            "incomplete_milestones": [
                                {"id": m.id, "title": m.title, "status": m.status} for m in blocking
                            ]
                        },
                    )

            milestone.status = MilestoneStatus.IN_PROGRESS.value
            milestone.started_at = now
            milestone.updated_at = now
            if data.notes:
                milestone.starting_notes = sanitize_string(data.notes.strip())

            project_updated = project.status == ProjectStatus.PENDING.value
            project.status = ProjectStatus.IN_PROGRESS.value
            project.current_milestone_id = milestone.id
            project.updated_at = now

            self.db.flush()
            milestone_data = serialize_milestone(milestone)

        logger.info(f"▶️ Milestone {milestone_id} started")
        self.activities.append(
            ActivityEvent(
                project_id=project.id,
                milestone_id=milestone_id,
                activity_type="milestone_started",
                description=f'Milestone "{milestone.title}" started',
                performed_by=user.id,
                metadata={
                    "previous_status": MilestoneStatus.NOT_STARTED.value,
                    "new_status": MilestoneStatus.IN_PROGRESS.value,
                    "notes": data.notes,
                    "project_name": project.name,
                },
            )
        )

        return {
            "success": True,
            "message": "Milestone started successfully",
            "data": {"milestone": milestone_data, "projectUpdated": project_updated},
        }

    def submit_milestone(self, milestone_id: str, data: SubmitMilestoneRequest, user: User) -> dict:
        """Hand a milestone (or its revision) to the client for review"""
        require_id(milestone_id, "milestoneId")
        require_id(data.projectId, "projectId")
        now = datetime.utcnow()
        notes = sanitize_string(data.submissionNotes)

        with transaction(self.db):
            milestone, project = self._load(milestone_id, data.projectId)
            self._require_owner(project, user)

            previous_status = milestone.status
            transition(previous_status, MilestoneAction.SUBMIT)

            attachment_id = None
            if data.attachments:
                attachment = self.repo.add_media_attachment(
                    self.db,
                    project_id=project.id,
                    milestone_id=milestone.id,
                    uploaded_by=user.id,
                    file_keys=[a.fileKey for a in data.attachments],
                    file_urls=[a.url for a in data.attachments if a.url],
                    file_name=", ".join(a.fileName for a in data.attachments)[:255],
                    submission_status="submitted",
                    submission_notes=notes,
                )
                self.db.flush()
                attachment_id = attachment.id

            milestone.status = MilestoneStatus.SUBMITTED.value
            milestone.submission_notes = notes
            milestone.submitted_at = now
            milestone.updated_at = now

            self.db.flush()
            milestone_data = serialize_milestone(milestone)

        is_resubmission = previous_status == MilestoneStatus.REJECTED.value
        logger.info(f"📤 Milestone {milestone_id} submitted ({len(data.attachments)} files)")
        self.activities.append(
            ActivityEvent(
                project_id=project.id,
                milestone_id=milestone_id,
                activity_type="milestone_submitted",
                description=f'Milestone "{milestone.title}" submitted for review',
                performed_by=user.id,
                metadata={
                    "submission_notes": notes,
                    "file_count": len(data.attachments),
                    "media_attachment_id": attachment_id,
                    "resubmission": is_resubmission,
                },
            )
        )

        return {
            "success": True,
            "message": "Milestone submitted successfully",
            "data": {
                "milestone": milestone_data,
                "filesUploaded": len(data.attachments),
                "mediaAttachmentId": attachment_id,
                "resubmission": is_resubmission,
            },
        }

    def delete_milestone(self, milestone_id: str, project_id: str, user: User) -> dict:
        """Delete a milestone that has not started. The project budget is left untouched."""
        require_id(milestone_id, "milestoneId")
        require_id(project_id, "projectId")
        now = datetime.utcnow()

        with transaction(self.db):
            milestone, project = self._load(milestone_id, project_id)
            self._require_owner(project, user)
            transition(milestone.status, MilestoneAction.DELETE)

            snapshot = {
                "milestone_name": milestone.title,
                "milestone_price": milestone.milestone_price,
                "duration_days": milestone.duration_days,
                "status": milestone.status,
            }
            self.repo.delete_milestone(self.db, milestone)

            if project.current_milestone_id == milestone_id:
                project.current_milestone_id = None

            previous_project_status = project.status
            counts = count_milestones(self.repo.get_project_statuses(self.db, project.id))
            if counts.total == 0:
                project.status = ProjectStatus.PENDING.value
            elif counts.project_completed:
                project.status = ProjectStatus.COMPLETED.value
            project.updated_at = now
            project_updated = project.status != previous_project_status

        logger.info(f"🗑️ Milestone {milestone_id} deleted from project {project_id}")
        self.activities.append(
            ActivityEvent(
                project_id=project_id,
                milestone_id=milestone_id,
                activity_type="milestone_deleted",
                description=f'Milestone "{snapshot["milestone_name"]}" deleted',
                performed_by=user.id,
                metadata=snapshot,
            )
        )

        return {
            "success": True,
            "message": "Milestone deleted successfully",
            "data": {
                "deletedMilestoneId": milestone_id,
                "projectUpdated": project_updated,
                "milestones": counts.as_dict(),
            },
        }
