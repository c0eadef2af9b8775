"""Project router - FastAPI endpoints for project operations"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...activity import ActivityPublisher, get_activity_publisher
from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..milestones.router import schedule_activities
from .schemas import ProjectCreate, ProjectDetail, ProjectSummary
from .service import ProjectService

router = APIRouter(prefix="/projects", tags=["Projects"])


def get_project_service(db: Session = Depends(get_db)) -> ProjectService:
    """Dependency injection for ProjectService"""
    return ProjectService(db)


@router.post("")
async def create_project(
    data: ProjectCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
    publisher: ActivityPublisher = Depends(get_activity_publisher),
):
    """Create a project with its milestones"""
    result = service.create_project(data, current_user)
    schedule_activities(background_tasks, publisher, service)
    return result


@router.get("", response_model=list[ProjectSummary])
async def list_projects(
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Get all projects for the current agency"""
    return service.list_projects(current_user)


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Get a project with milestones, attachments and reviews"""
    return service.get_project(project_id, current_user)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service),
):
    """Delete a project and everything attached to it"""
    return service.delete_project(project_id, current_user)
