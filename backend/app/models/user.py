import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.core.roles import UserRole, UserStatus, is_staff_role, normalize_role


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.STUDENT.value)  # student, teacher, support, admin
    status: Mapped[str] = mapped_column(String(20), default=UserStatus.PENDING.value)  # pending, approved, blocked
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        *,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        role: str = UserRole.STUDENT.value,
        status: str = UserStatus.PENDING.value,
        **kw
    ):
        """
        Initialize a User instance.

        Args:
            email: User's email address
            display_name: Name shown on passes and notifications
            role: User role (default: "student")
            status: Account status (default: "pending")
            **kw: Additional arguments passed by SQLAlchemy during ORM operations
        """
        super().__init__(**kw)
        if email is not None:
            self.email = email
        if display_name is not None:
            self.display_name = display_name
        self.role = normalize_role(role)
        self.status = status

    @property
    def is_approved(self) -> bool:
        return self.status == UserStatus.APPROVED.value

    @property
    def is_staff(self) -> bool:
        """Teachers, support staff and admins may act on any pass."""
        return is_staff_role(self.role)
