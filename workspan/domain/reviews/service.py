"""Review service - Business logic for client reviews"""

import logging
import math
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...activity import ActivityEvent
from ...database import transaction
from ...models import User
from ...shared.access import is_client, require_id
from ...shared.errors import DuplicateReview, Forbidden, NotFound
from ...utils.sanitization import sanitize_string
from .repository import ReviewRepository
from .schemas import ReviewCreate, ReviewResponse, ReviewStats

logger = logging.getLogger(__name__)


class ReviewService:
    """Service layer for review operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReviewRepository()
        self.activities: list[ActivityEvent] = []

    def submit_review(self, project_id: str, data: ReviewCreate, user: User) -> dict:
        """
        Store the client's review of a project, or of one milestone.

        Each target takes exactly one review. The lookup below gives a clear
        error in the common case; the unique indexes on `reviews` settle
        concurrent submissions.
        """
        require_id(project_id, "projectId")
        if data.milestoneId:
            require_id(data.milestoneId, "milestoneId")
        target = "milestone" if data.milestoneId else "project"

        try:
            with transaction(self.db):
                project = self.repo.get_project(self.db, project_id)
                if not project:
                    raise NotFound("Project not found")
                if not is_client(project, user):
                    logger.warning(f"⚠️ User {user.id} is not the client of project {project_id}")
                    raise Forbidden("Only the project client can submit a review")

                if data.milestoneId and not self.repo.get_milestone_in_project(
                    self.db, data.milestoneId, project_id
                ):
                    raise NotFound("Milestone not found or does not belong to the specified project")

                if self.repo.get_existing_review(self.db, project_id, data.milestoneId):
                    raise DuplicateReview(f"A review has already been submitted for this {target}")

                review = self.repo.create_review(
                    self.db,
                    project_id=project_id,
                    milestone_id=data.milestoneId,
                    stars=data.rating,
                    review=sanitize_string(data.review),
                )
                review_id = review.id
        except IntegrityError as e:
            logger.warning(f"⚠️ Concurrent duplicate review on project {project_id}: {e.orig}")
            raise DuplicateReview(f"A review has already been submitted for this {target}") from e

        logger.info(f"⭐ Review {review_id} ({data.rating} stars) stored for {target} on project {project_id}")
        self.activities.append(
            ActivityEvent(
                project_id=project_id,
                milestone_id=data.milestoneId,
                activity_type="review_submitted",
                description=f"Client left a {data.rating}-star review",
                performed_by=user.id,
                metadata={"rating": data.rating, "target": target},
            )
        )

        return {
            "success": True,
            "message": "Review submitted successfully",
            "data": {"reviewId": review_id},
        }

    def list_agency_reviews(
        self, user: User, page: int = 1, limit: int = 10, rating: Optional[int] = None
    ) -> dict:
        """Reviews across the agency's projects with overall rating stats"""
        distribution = self.repo.get_rating_distribution(self.db, user.id)
        total = sum(distribution.values())
        average = None
        if total:
            average = round(sum(stars * count for stars, count in distribution.items()) / total, 1)

        stats = ReviewStats(
            total=total,
            averageRating=average,
            distribution={stars: distribution.get(stars, 0) for stars in range(1, 6)},
        )

        rows = self.repo.get_agency_reviews(
            self.db, user.id, rating=rating, offset=(page - 1) * limit, limit=limit
        )
        reviews = [
            ReviewResponse(
                id=review.id,
                project_id=review.project_id,
                milestone_id=review.milestone_id,
                stars=review.stars,
                review=review.review,
                created_at=review.created_at,
                project_name=project.name,
                client_name=project.client_name,
                milestone_title=milestone_title,
            )
            for review, project, milestone_title in rows
        ]

        matching = distribution.get(rating, 0) if rating else total
        return {
            "success": True,
            "data": {
                "stats": stats.model_dump(),
                "reviews": [r.model_dump(mode="json") for r in reviews],
                "total": total,
                "averageRating": average,
                "pagination": {
                    "current_page": page,
                    "total_pages": math.ceil(matching / limit) if matching else 0,
                    "total_reviews": matching,
                },
            },
        }
