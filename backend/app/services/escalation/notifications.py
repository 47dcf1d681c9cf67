"""
Escalation Notifications

Builds the notification burst for a rising escalation edge and hands each
notification to a dispatcher. Delivery is at-most-one-attempt: a failed send
is logged and the remaining recipients are still attempted.

Recipients:
- The student (when linked to a user account)
- The issuer (unless the student issued the pass themselves)
- Staff assigned to the current location, when it differs from the origin
  (the issuer is not notified twice)
- All approved admins, for ALERT and CRITICAL
"""
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.clock import Clock, system_clock
from app.models.notification import Notification
from app.models.passes import Pass, EscalationLevel
from app.repositories.directory_repository import DirectoryRepository
from app.services.escalation.evaluator import ESCALATION_LEVELS
from app.services.logging import hallpass_logger

NOTIFICATION_TYPE_ESCALATION = "escalation"


@dataclass(frozen=True)
class EscalationNotification:
    recipient_id: uuid.UUID
    severity: str
    title: str
    message: str
    pass_id: uuid.UUID
    notification_type: str = NOTIFICATION_TYPE_ESCALATION


@dataclass
class NotifyResult:
    sent: int = 0
    failed: int = 0


class NotificationDispatcher:
    """Delivery transport. Implementations may raise; the caller logs and continues."""

    async def send(self, notification: EscalationNotification) -> None:
        raise NotImplementedError


class DatabaseNotificationDispatcher(NotificationDispatcher):
    """Stores each notification as an in-app Notification row in its own transaction."""

    def __init__(self, session_factory: async_sessionmaker, clock: Optional[Clock] = None):
        self.session_factory = session_factory
        self.clock = clock or system_clock

    async def send(self, notification: EscalationNotification) -> None:
        async with self.session_factory() as session:
            session.add(Notification(
                user_id=notification.recipient_id,
                notification_type=notification.notification_type,
                severity=notification.severity,
                title=notification.title,
                message=notification.message,
                pass_id=notification.pass_id,
                is_read=False,
                created_at=self.clock.now(),
            ))
            await session.commit()


def escalation_title(level: EscalationLevel) -> str:
    info = ESCALATION_LEVELS[EscalationLevel(level)]
    return f"{info.icon} Pass Escalation - {EscalationLevel(level).value.upper()}"


class EscalationNotifier:
    def __init__(self, directory: DirectoryRepository, dispatcher: NotificationDispatcher):
        self.directory = directory
        self.dispatcher = dispatcher

    async def build_notifications(
        self,
        pass_record: Pass,
        level: EscalationLevel,
        duration: int,
    ) -> List[EscalationNotification]:
        level = EscalationLevel(level)
        severity = ESCALATION_LEVELS[level].severity
        title = escalation_title(level)
        recipients: Dict[uuid.UUID, str] = {}

        def add(recipient_id: Optional[uuid.UUID], message: str) -> None:
            # First message per recipient wins
            if recipient_id is not None and recipient_id not in recipients:
                recipients[recipient_id] = message

        student = await self.directory.get_student(pass_record.student_id)
        student_user_id = student.user_id if student else None
        add(
            student_user_id,
            f"Your pass to {pass_record.destination_location_name} has been out for "
            f"{duration} minutes. Please return promptly.",
        )

        if pass_record.issued_by_id != student_user_id:
            add(
                pass_record.issued_by_id,
                f"Pass issued to {pass_record.student_name} has been out for {duration} minutes.",
            )

        current_location_id = pass_record.current_location_id
        if current_location_id and current_location_id != pass_record.origin_location_id:
            location = await self.directory.get_location(current_location_id)
            location_name = location.name if location else pass_record.destination_location_name
            for assignment in await self.directory.list_location_staff(current_location_id):
                if assignment.staff_user_id == pass_record.issued_by_id:
                    continue
                add(
                    assignment.staff_user_id,
                    f"{pass_record.student_name} has been at {location_name} for {duration} minutes.",
                )

        if level in (EscalationLevel.ALERT, EscalationLevel.CRITICAL):
            for admin in await self.directory.list_approved_admins():
                add(
                    admin.id,
                    f"Escalation alert: {pass_record.student_name} has been out for {duration} minutes.",
                )

        return [
            EscalationNotification(
                recipient_id=recipient_id,
                severity=severity,
                title=title,
                message=message,
                pass_id=pass_record.id,
            )
            for recipient_id, message in recipients.items()
        ]

    async def notify(
        self,
        pass_record: Pass,
        level: EscalationLevel,
        duration: int,
    ) -> NotifyResult:
        result = NotifyResult()
        for notification in await self.build_notifications(pass_record, level, duration):
            try:
                await self.dispatcher.send(notification)
                result.sent += 1
            except Exception as e:
                result.failed += 1
                hallpass_logger.notification_dispatch_failed(
                    pass_id=pass_record.id,
                    error=str(e),
                    recipient_id=notification.recipient_id,
                )

        hallpass_logger.escalation_notifications_sent(
            pass_id=pass_record.id,
            level=EscalationLevel(level).value,
            recipient_count=result.sent,
            failed_count=result.failed,
        )
        return result
