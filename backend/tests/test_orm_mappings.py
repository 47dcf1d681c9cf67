"""
Unit Tests for ORM Mapping Validation

Tests ensure SQLAlchemy relationships and table constraints are configured
and the mapper can initialize without errors.
"""
import pytest


class TestORMMappings:
    """Tests for SQLAlchemy ORM mapping configuration."""

    def test_configure_mappers_succeeds(self):
        """All ORM mappers should configure without errors."""
        from sqlalchemy.orm import configure_mappers
        from app.models import (
            User, Student, Group,
            Location, LocationStaffAssignment,
            Pass, PassLeg,
            Notification,
        )

        configure_mappers()

    def test_pass_leg_relationship(self):
        from sqlalchemy.orm import configure_mappers
        from app.models import Pass, PassLeg

        configure_mappers()

        assert Pass.legs.property.mapper.class_ is PassLeg
        assert PassLeg.pass_record.property.mapper.class_ is Pass

    def test_student_group_membership_is_many_to_many(self):
        from sqlalchemy.orm import configure_mappers
        from app.models import Student, Group, group_members

        configure_mappers()

        assert Student.groups.property.secondary is group_members
        assert Group.members.property.secondary is group_members

    def test_single_active_pass_index(self):
        """The partial unique index backs the one-active-pass-per-student rule."""
        from app.models import Pass, ACTIVE_PASS_INDEX

        index = next(i for i in Pass.__table__.indexes if i.name == ACTIVE_PASS_INDEX)
        assert index.unique is True
        assert [c.name for c in index.columns] == ["student_id"]
        assert index.dialect_options["postgresql"]["where"] is not None
        assert index.dialect_options["sqlite"]["where"] is not None

    def test_schemas_share_model_enums(self):
        """API schemas and ORM models use one definition of each pass enum."""
        from app.models import passes as models
        from app.schemas import passes as pass_schemas
        from app.schemas import escalation as escalation_schemas

        assert pass_schemas.PassStatus is models.PassStatus
        assert pass_schemas.MovementState is models.MovementState
        assert pass_schemas.LegDirection is models.LegDirection
        assert pass_schemas.EscalationLevel is models.EscalationLevel
        assert escalation_schemas.EscalationLevel is models.EscalationLevel

    def test_verify_orm_mappings_function(self):
        """The startup verification function should run without errors."""
        from app.main import verify_orm_mappings

        verify_orm_mappings()

    @pytest.mark.parametrize("table_name", ["users", "students", "locations", "passes", "pass_legs", "notifications"])
    def test_tables_registered(self, table_name):
        from app.core.database import Base
        import app.models  # noqa: F401

        assert table_name in Base.metadata.tables
