"""
Threshold Resolver

Resolves warning/alert thresholds for a pass. First match wins:
1. Student-specific thresholds
2. Destination location thresholds
3. Group thresholds (strictest among the student's active groups)
4. Global default from settings

Resolution never fails outward: a lookup error is logged and the global
default is returned.
"""
from typing import Optional

from app.core.config import settings
from app.repositories.directory_repository import DirectoryRepository
from app.schemas.escalation import EscalationThresholds
from app.services.logging import hallpass_logger


class ThresholdResolver:
    def __init__(
        self,
        directory: DirectoryRepository,
        defaults: Optional[EscalationThresholds] = None,
    ):
        self.directory = directory
        self.defaults = defaults or settings.default_thresholds

    async def resolve(self, pass_record) -> EscalationThresholds:
        source = "student"
        try:
            thresholds = await self.directory.get_student_thresholds(pass_record.student_id)
            if thresholds:
                return thresholds

            source = "location"
            thresholds = await self.directory.get_location_thresholds(
                pass_record.destination_location_id
            )
            if thresholds:
                return thresholds

            source = "group"
            thresholds = await self.directory.get_group_thresholds_for_student(
                pass_record.student_id
            )
            if thresholds:
                return thresholds
        except Exception as e:
            hallpass_logger.threshold_lookup_failed(
                pass_id=pass_record.id,
                source=source,
                error=str(e),
            )

        return self.defaults
