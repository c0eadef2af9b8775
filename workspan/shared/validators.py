"""Shared validation utilities"""

import re
import uuid
from typing import Optional


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_project_name(name: str) -> str:
    """Project names allow letters, digits, spaces and - _ & ."""
    name = name.strip()
    if not re.match(r"^[a-zA-Z0-9\s\-_&.]+$", name):
        raise ValueError("Project name contains invalid characters")
    return name


def validate_person_name(name: str) -> str:
    """Client names allow letters, spaces, hyphens and apostrophes"""
    name = name.strip()
    if not re.match(r"^[a-zA-Z\s\-']+$", name):
        raise ValueError("Client name contains invalid characters")
    return name
