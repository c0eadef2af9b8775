"""Review router - client feedback endpoints"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...activity import ActivityPublisher, get_activity_publisher
from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..milestones.router import schedule_activities
from .schemas import ReviewCreate
from .service import ReviewService

router = APIRouter(tags=["Reviews"])


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    """Dependency injection for ReviewService"""
    return ReviewService(db)


@router.post("/projects/{project_id}/reviews")
async def submit_review(
    project_id: str,
    data: ReviewCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Client reviews a project or one of its milestones"""
    result = service.submit_review(project_id, data, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result


@router.get("/reviews")
async def list_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    rating: Optional[int] = Query(None, ge=1, le=5, description="Only reviews with this many stars"),
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    """Get reviews left on the current agency's projects"""
    return service.list_agency_reviews(current_user, page, limit, rating)
