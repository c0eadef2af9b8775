"""Review repository - Database operations for reviews"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Milestone, Project, Review


class ReviewRepository:
    """Repository for review database operations"""

    @staticmethod
    def get_project(db: Session, project_id: str) -> Optional[Project]:
        return db.query(Project).filter(Project.id == project_id).first()

    @staticmethod
    def get_milestone_in_project(db: Session, milestone_id: str, project_id: str) -> Optional[Milestone]:
        return (
            db.query(Milestone)
            .filter(Milestone.id == milestone_id, Milestone.project_id == project_id)
            .first()
        )

    @staticmethod
    def get_existing_review(
        db: Session, project_id: str, milestone_id: Optional[str]
    ) -> Optional[Review]:
        """Project-level reviews have no milestone; each target gets one review"""
        query = db.query(Review).filter(Review.project_id == project_id)
        if milestone_id:
            query = query.filter(Review.milestone_id == milestone_id)
        else:
            query = query.filter(Review.milestone_id.is_(None))
        return query.first()

    @staticmethod
    def create_review(db: Session, **review_data) -> Review:
        review = Review(**review_data)
        db.add(review)
        db.flush()
        return review

    @staticmethod
    def get_agency_reviews(
        db: Session,
        agency_id: str,
        rating: Optional[int] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> list[tuple[Review, Project, Optional[str]]]:
        """Reviews on the agency's projects, newest first, with project and milestone title"""
        query = (
            db.query(Review, Project, Milestone.title)
            .join(Project, Review.project_id == Project.id)
            .outerjoin(Milestone, Review.milestone_id == Milestone.id)
            .filter(Project.agency_id == agency_id)
        )
        if rating:
            query = query.filter(Review.stars == rating)
        return query.order_by(Review.created_at.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def get_rating_distribution(db: Session, agency_id: str) -> dict[int, int]:
        """{stars: count} over every review of the agency"""
        rows = (
            db.query(Review.stars, func.count(Review.id))
            .join(Project, Review.project_id == Project.id)
            .filter(Project.agency_id == agency_id)
            .group_by(Review.stars)
            .all()
        )
        return {stars: count for stars, count in rows}
