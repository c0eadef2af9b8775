"""Who may act on a project"""

from typing import Optional

from ..models import Project, User
from .errors import ValidationFailed
from .validators import validate_uuid


def require_id(value: Optional[str], label: str) -> str:
    """Reject malformed identifiers before they reach a query"""
    if not value or not validate_uuid(value):
        raise ValidationFailed(f"Invalid {label} format", {"field": label})
    return value


def is_owner(project: Project, user: User) -> bool:
    return project.agency_id == user.id


def is_client(project: Project, user: User) -> bool:
    """The client is identified by the email the agency invited"""
    return bool(user.email) and project.client_email.lower() == user.email.lower()


def is_participant(project: Project, user: User) -> bool:
    return is_owner(project, user) or is_client(project, user)
