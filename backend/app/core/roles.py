"""
Role Constants Module

This module defines the valid user roles and account statuses for the
hall pass service. It provides a single source of truth for role values
across the application.

Usage:
    from app.core.roles import UserRole, is_staff_role

    if is_staff_role(user.role):
        ...

Rules:
- Students may only act on their own passes
- Teachers, support staff and admins may issue override passes and
  act on any pass
- Only APPROVED accounts may act at all
"""
from enum import Enum


class UserRole(str, Enum):
    """
    Enumeration of valid user roles.

    The roles are:
    - STUDENT: Requests passes for themselves
    - TEACHER: Issues override passes, monitors their rooms
    - SUPPORT: Hall monitors, office staff
    - ADMIN: School administration, receives ALERT/CRITICAL escalations
    """
    STUDENT = "student"
    TEACHER = "teacher"
    SUPPORT = "support"
    ADMIN = "admin"


class UserStatus(str, Enum):
    """Account approval status."""
    PENDING = "pending"
    APPROVED = "approved"
    BLOCKED = "blocked"


# Set of all valid roles (lowercase)
VALID_ROLES: set[str] = {role.value for role in UserRole}

# Roles allowed to issue override passes and monitor other students
STAFF_ROLES: set[str] = {UserRole.TEACHER.value, UserRole.SUPPORT.value, UserRole.ADMIN.value}


def is_staff_role(role: str) -> bool:
    """Check if a role may act on passes of other students."""
    return role in STAFF_ROLES


def normalize_role(role: str) -> str:
    """
    Normalize a role string to lowercase.

    Args:
        role: The role string to normalize

    Returns:
        The lowercase role string

    Raises:
        ValueError: If the normalized role is not valid
    """
    normalized = role.lower().strip()
    if normalized not in VALID_ROLES:
        raise ValueError(f"Invalid role: {role}. Must be one of: {', '.join(sorted(VALID_ROLES))}")
    return normalized
