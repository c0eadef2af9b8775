"""Project service - Business logic for project operations"""

import logging

from sqlalchemy.orm import Session

from ...activity import ActivityEvent
from ...database import transaction
from ...models import User
from ...shared.access import is_owner, is_participant, require_id
from ...shared.errors import BudgetExceeded, DurationExceeded, Forbidden, NotFound, ValidationFailed
from ...utils.sanitization import sanitize_string
from ..milestones.lifecycle import MilestoneStatus, exceeds_ceiling
from .repository import ProjectRepository
from .schemas import MIN_MILESTONE_TOTAL, MilestoneCounts, ProjectCreate, ProjectDetail, ProjectSummary

logger = logging.getLogger(__name__)


class ProjectService:
    """Service layer for project operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProjectRepository()
        self.activities: list[ActivityEvent] = []

    def create_project(self, data: ProjectCreate, user: User) -> dict:
        """Create a project and its milestone plan in one transaction"""
        total_price = round(sum(m.milestone_price for m in data.milestones), 2)
        total_days = sum(m.duration_days for m in data.milestones)

        if total_price < MIN_MILESTONE_TOTAL:
            raise ValidationFailed(
                f"Milestone prices must total at least {MIN_MILESTONE_TOTAL}",
                {"total_milestone_price": total_price},
            )
        if exceeds_ceiling(0, total_price, data.project_budget):
            raise BudgetExceeded(
                "Total milestone prices exceed project budget",
                {"project_budget": data.project_budget, "total_milestone_price": total_price},
            )
        if exceeds_ceiling(0, total_days, data.estimated_days):
            raise DurationExceeded(
                "Total milestone duration exceeds project timeline",
                {"estimated_days": data.estimated_days, "total_milestone_days": total_days},
            )

        with transaction(self.db):
            project = self.repo.create_project(
                self.db,
                user.id,
                name=sanitize_string(data.name),
                type=data.type,
                description=sanitize_string(data.description),
                client_name=sanitize_string(data.client_name),
                client_email=data.client_email,
                project_price=data.project_budget,
                project_duration_days=data.estimated_days,
                status="pending",
            )
            self.repo.add_milestones(
                self.db,
                project.id,
                [
                    {
                        "title": sanitize_string(m.name),
                        "description": sanitize_string(m.description.strip()) if m.description else None,
                        "duration_days": m.duration_days,
                        "milestone_price": m.milestone_price,
                        "free_revisions": m.free_revisions,
                        "revision_rate": m.revision_rate,
                    }
                    for m in data.milestones
                ],
            )
            project_id = project.id

        logger.info(f"✅ Project {project_id} created with {len(data.milestones)} milestones")
        self.activities.append(
            ActivityEvent(
                project_id=project_id,
                activity_type="project_created",
                description=f'Project "{data.name}" created with {len(data.milestones)} milestones',
                performed_by=user.id,
                metadata={
                    "client_name": data.client_name,
                    "client_email": data.client_email,
                    "total_budget": data.project_budget,
                    "duration_days": data.estimated_days,
                    "milestone_count": len(data.milestones),
                },
            )
        )

        return {
            "success": True,
            "message": "Project created successfully",
            "data": {"project_id": project_id, "milestones": len(data.milestones)},
        }

    def list_projects(self, user: User) -> list[ProjectSummary]:
        """Agency dashboard: projects with milestone counts by status"""
        projects = self.repo.get_agency_projects(self.db, user.id)
        project_ids = [p.id for p in projects]
        status_counts = self.repo.get_milestone_status_counts(self.db, project_ids)
        review_stats = self.repo.get_review_stats(self.db, project_ids)

        summaries = []
        for project in projects:
            by_status = status_counts.get(project.id, {})
            counts = MilestoneCounts(
                total=sum(by_status.values()),
                **{s.value: by_status.get(s.value, 0) for s in MilestoneStatus},
            )
            total_reviews, average = review_stats.get(project.id, (0, None))
            summaries.append(
                ProjectSummary(
                    id=project.id,
                    name=project.name,
                    type=project.type,
                    status=project.status,
                    client_name=project.client_name,
                    client_email=project.client_email,
                    project_price=project.project_price,
                    project_duration_days=project.project_duration_days,
                    created_at=project.created_at,
                    milestones=counts,
                    average_rating=round(average, 1) if average is not None else None,
                    total_reviews=total_reviews,
                )
            )
        return summaries

    def get_project(self, project_id: str, user: User) -> ProjectDetail:
        require_id(project_id, "projectId")
        project = self.repo.get_project_with_details(self.db, project_id)
        if not project:
            raise NotFound("Project not found")
        if not is_participant(project, user):
            logger.warning(f"⚠️ User {user.id} denied access to project {project_id}")
            raise Forbidden("Unauthorized access to project")
        return ProjectDetail.model_validate(project)

    def delete_project(self, project_id: str, user: User) -> dict:
        require_id(project_id, "projectId")

        with transaction(self.db):
            # Milestones before the project, the order every milestone operation takes
            self.repo.lock_project_milestones(self.db, project_id)
            project = self.repo.get_project_for_update(self.db, project_id)
            if not project:
                raise NotFound("Project not found")
            if not is_owner(project, user):
                logger.warning(f"⚠️ User {user.id} tried to delete project {project_id}")
                raise Forbidden("Only the project owner can delete it")
            milestone_count = len(project.milestones)
            self.repo.delete_project(self.db, project)

        logger.info(f"🗑️ Project {project_id} deleted ({milestone_count} milestones)")
        return {
            "success": True,
            "message": "Project deleted successfully",
            "data": {"deletedProjectId": project_id},
        }
