"""Milestone router - FastAPI endpoints for the milestone lifecycle"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...activity import ActivityPublisher, get_activity_publisher
from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import (
    MilestoneUpdate,
    RejectMilestoneRequest,
    StartMilestoneRequest,
    SubmitMilestoneRequest,
)
from .service import MilestoneService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/milestones", tags=["Milestones"])


def get_milestone_service(db: Session = Depends(get_db)) -> MilestoneService:
    """Dependency injection for MilestoneService"""
    return MilestoneService(db)


def schedule_activities(
    background_tasks: BackgroundTasks, publisher: ActivityPublisher, service
) -> None:
    """Ship the committed operation's activity events once the response is out"""
    if service.activities:
        background_tasks.add_task(publisher.publish, list(service.activities))


# ============================================================================
# CLIENT REVIEW
# ============================================================================


@router.post("/{milestone_id}/approve")
async def approve_milestone(
    milestone_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Approve a submitted milestone"""
    result = service.approve_milestone(milestone_id, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result


@router.post("/{milestone_id}/reject")
async def reject_milestone(
    milestone_id: str,
    data: RejectMilestoneRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Reject a submitted milestone and request a revision"""
    result = service.reject_milestone(milestone_id, data, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result


# ============================================================================
# AGENCY OPERATIONS
# ============================================================================


@router.patch("/{milestone_id}")
async def update_milestone(
    milestone_id: str,
    data: MilestoneUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Edit a milestone that has not started"""
    result = service.update_milestone(milestone_id, data, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result


@router.post("/{milestone_id}/start")
async def start_milestone(
    milestone_id: str,
    background_tasks: BackgroundTasks,
    data: StartMilestoneRequest = StartMilestoneRequest(),
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Start work on a milestone"""
    result = service.start_milestone(milestone_id, data, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result


@router.post("/{milestone_id}/submit")
async def submit_milestone(
    milestone_id: str,
    data: SubmitMilestoneRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Submit a milestone (or a revision) for client review"""
    result = service.submit_milestone(milestone_id, data, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result


@router.delete("/{milestone_id}")
async def delete_milestone(
    milestone_id: str,
    background_tasks: BackgroundTasks,
    project_id: str = Query(..., alias="projectId"),
    current_user: User = Depends(get_current_user),
    service: MilestoneService = Depends(get_milestone_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Delete a milestone that has not started"""
    result = service.delete_milestone(milestone_id, project_id, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result
