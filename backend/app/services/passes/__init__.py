# Pass lifecycle services module
from app.services.passes.state_machine import PassService, total_duration_minutes
from app.services.passes.legacy_flow import (
    LegacyPassFlow,
    MovementAction,
    MovementTransition,
    next_movement,
)

__all__ = [
    "PassService",
    "total_duration_minutes",
    "LegacyPassFlow",
    "MovementAction",
    "MovementTransition",
    "next_movement",
]
