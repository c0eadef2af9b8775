"""Project repository - Database operations for projects"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Milestone, Project, Review


class ProjectRepository:
    """Repository for project database operations"""

    @staticmethod
    def create_project(db: Session, agency_id: str, **project_data) -> Project:
        project = Project(agency_id=agency_id, **project_data)
        db.add(project)
        db.flush()
        return project

    @staticmethod
    def add_milestones(db: Session, project_id: str, milestones: list[dict]) -> list[Milestone]:
        """Insert milestones in plan order; priority is 1-based"""
        rows = [
            Milestone(project_id=project_id, priority=index, status="not_started", **data)
            for index, data in enumerate(milestones, start=1)
        ]
        db.add_all(rows)
        db.flush()
        return rows

    @staticmethod
    def get_agency_projects(db: Session, agency_id: str) -> list[Project]:
        """Get all projects for an agency, newest first"""
        return (
            db.query(Project)
            .filter(Project.agency_id == agency_id)
            .order_by(Project.created_at.desc())
            .all()
        )

    @staticmethod
    def get_milestone_status_counts(db: Session, project_ids: list[str]) -> dict[str, dict[str, int]]:
        """{project_id: {status: count}}"""
        if not project_ids:
            return {}
        rows = (
            db.query(Milestone.project_id, Milestone.status, func.count(Milestone.id))
            .filter(Milestone.project_id.in_(project_ids))
            .group_by(Milestone.project_id, Milestone.status)
            .all()
        )
        counts: dict[str, dict[str, int]] = {}
        for project_id, status, count in rows:
            counts.setdefault(project_id, {})[status] = count
        return counts

    @staticmethod
    def get_review_stats(db: Session, project_ids: list[str]) -> dict[str, tuple[int, float]]:
        """{project_id: (review count, average stars)}"""
        if not project_ids:
            return {}
        rows = (
            db.query(Review.project_id, func.count(Review.id), func.avg(Review.stars))
            .filter(Review.project_id.in_(project_ids))
            .group_by(Review.project_id)
            .all()
        )
        return {project_id: (count, float(avg)) for project_id, count, avg in rows}

    @staticmethod
    def get_project_with_details(db: Session, project_id: str) -> Optional[Project]:
        """Project with milestones, their attachments and reviews loaded"""
        return (
            db.query(Project)
            .options(
                selectinload(Project.milestones).selectinload(Milestone.media_attachments),
                selectinload(Project.reviews),
            )
            .filter(Project.id == project_id)
            .first()
        )

    @staticmethod
    def lock_project_milestones(db: Session, project_id: str) -> list[Milestone]:
        """Lock every milestone of the project, in id order"""
        return (
            db.query(Milestone)
            .filter(Milestone.project_id == project_id)
            .order_by(Milestone.id)
            .with_for_update()
            .all()
        )

    @staticmethod
    def get_project_for_update(db: Session, project_id: str) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).with_for_update().first()

    @staticmethod
    def delete_project(db: Session, project: Project) -> None:
        """Delete a project; milestones, attachments, messages, reviews and activities cascade"""
        db.delete(project)
        db.flush()
