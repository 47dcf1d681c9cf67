"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2024-09-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

THRESHOLD_PAIR_CHECK = (
    "(escalation_warning_minutes IS NULL AND escalation_alert_minutes IS NULL) OR "
    "(escalation_warning_minutes IS NOT NULL AND escalation_alert_minutes IS NOT NULL "
    "AND escalation_alert_minutes > escalation_warning_minutes)"
)


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=True, server_default='student'),
        sa.Column('status', sa.String(20), nullable=True, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create students table
    op.create_table(
        'students',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('student_number', sa.String(50), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('grade', sa.Integer(), nullable=True),
        sa.Column('escalation_warning_minutes', sa.Integer(), nullable=True),
        sa.Column('escalation_alert_minutes', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('student_number'),
        sa.CheckConstraint(THRESHOLD_PAIR_CHECK, name='ck_students_thresholds'),
    )

    # Create groups table
    op.create_table(
        'groups',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('group_type', sa.String(20), nullable=True, server_default='negative'),
        sa.Column('escalation_warning_minutes', sa.Integer(), nullable=True),
        sa.Column('escalation_alert_minutes', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(THRESHOLD_PAIR_CHECK, name='ck_groups_thresholds'),
    )

    # Create group_members association table
    op.create_table(
        'group_members',
        sa.Column('group_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('group_id', 'student_id')
    )

    # Create locations table
    op.create_table(
        'locations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('short_name', sa.String(50), nullable=True),
        sa.Column('location_type', sa.String(20), nullable=True, server_default='classroom'),
        sa.Column('is_check_in_eligible', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('is_shared', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('escalation_warning_minutes', sa.Integer(), nullable=True),
        sa.Column('escalation_alert_minutes', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(THRESHOLD_PAIR_CHECK, name='ck_locations_thresholds'),
        sa.CheckConstraint(
            "NOT (location_type = 'restroom' AND is_check_in_eligible)",
            name='ck_locations_restroom_not_check_in',
        ),
    )

    # Create location_staff_assignments table
    op.create_table(
        'location_staff_assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('location_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('staff_user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('staff_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=True, server_default='false'),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['staff_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('location_id', 'staff_user_id', name='uq_location_staff'),
    )
    op.create_index(
        'ix_location_staff_assignments_location_id', 'location_staff_assignments', ['location_id']
    )

    # Create passes table
    op.create_table(
        'passes',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('student_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('student_name', sa.String(255), nullable=False),
        sa.Column('origin_location_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('origin_location_name', sa.String(255), nullable=False),
        sa.Column('destination_location_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('destination_location_name', sa.String(255), nullable=False),
        sa.Column('current_location_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('movement_state', sa.String(20), nullable=False, server_default='IN_TRANSIT'),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_duration', sa.Integer(), nullable=True),
        sa.Column('escalation_level', sa.String(20), nullable=True),
        sa.Column('escalation_triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('issued_by_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('issued_by_name', sa.String(255), nullable=False),
        sa.Column('is_override', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['origin_location_id'], ['locations.id']),
        sa.ForeignKeyConstraint(['destination_location_id'], ['locations.id']),
        sa.ForeignKeyConstraint(['current_location_id'], ['locations.id']),
        sa.ForeignKeyConstraint(['issued_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'origin_location_id <> destination_location_id',
            name='ck_passes_origin_not_destination',
        ),
        sa.CheckConstraint(
            'closed_at IS NULL OR closed_at >= opened_at',
            name='ck_passes_closed_after_opened',
        ),
        sa.CheckConstraint(
            '(escalation_level IS NULL AND escalation_triggered_at IS NULL) OR '
            '(escalation_level IS NOT NULL AND escalation_triggered_at IS NOT NULL)',
            name='ck_passes_escalation_pair',
        ),
        sa.CheckConstraint('updated_at >= created_at', name='ck_passes_updated_after_created'),
        sa.CheckConstraint(
            'total_duration IS NULL OR total_duration >= 0',
            name='ck_passes_total_duration_non_negative',
        ),
    )
    op.create_index('ix_passes_status', 'passes', ['status'])
    op.create_index('ix_passes_student_status', 'passes', ['student_id', 'status'])
    # At most one active pass per student
    op.create_index(
        'uq_passes_one_active_per_student',
        'passes',
        ['student_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    # Create pass_legs table
    op.create_table(
        'pass_legs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('pass_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('leg_number', sa.Integer(), nullable=False),
        sa.Column('location_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('location_name', sa.String(255), nullable=False),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('actor_name', sa.String(255), nullable=False),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_check_in', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_return', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('duration_from_previous', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['pass_id'], ['passes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('pass_id', 'leg_number', name='uq_pass_legs_pass_leg_number'),
        sa.CheckConstraint('leg_number >= 1', name='ck_pass_legs_leg_number_positive'),
        sa.CheckConstraint(
            'duration_from_previous IS NULL OR duration_from_previous >= 0',
            name='ck_pass_legs_duration_non_negative',
        ),
    )
    op.create_index('ix_pass_legs_pass_id', 'pass_legs', ['pass_id'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('notification_type', sa.String(50), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('pass_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['pass_id'], ['passes.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_pass_id', 'notifications', ['pass_id'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('pass_legs')
    op.drop_index('uq_passes_one_active_per_student', table_name='passes')
    op.drop_table('passes')
    op.drop_table('location_staff_assignments')
    op.drop_table('locations')
    op.drop_table('group_members')
    op.drop_table('groups')
    op.drop_table('students')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
