# Models module
from app.models.user import User
from app.models.student import Student, Group, GroupType, group_members
from app.models.location import Location, LocationType, LocationStaffAssignment
from app.models.passes import (
    Pass,
    PassLeg,
    PassStatus,
    MovementState,
    EscalationLevel,
    LegDirection,
    ACTIVE_PASS_INDEX,
)
from app.models.notification import Notification

__all__ = [
    "User",
    "Student",
    "Group",
    "GroupType",
    "group_members",
    "Location",
    "LocationType",
    "LocationStaffAssignment",
    "Pass",
    "PassLeg",
    "PassStatus",
    "MovementState",
    "EscalationLevel",
    "LegDirection",
    "ACTIVE_PASS_INDEX",
    "Notification",
]
