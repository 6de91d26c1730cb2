"""create session enrollment tables

Revision ID: a3c9e1f05b72
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a3c9e1f05b72'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create tutors table
    op.create_table('tutors',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )

    # Create sessions table
    op.create_table('sessions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('session_type', sa.String(length=20), nullable=False),
    sa.Column('course_type', sa.String(length=50), nullable=True),
    sa.Column('tutor_id', sa.String(length=36), nullable=False),
    sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
    sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
    sa.Column('max_participants', sa.Integer(), nullable=False),
    sa.Column('current_participants', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='SCHEDULED'),
    sa.Column('meeting_link', sa.String(length=500), nullable=True),
    sa.Column('calendar_event_ref', sa.String(length=255), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('max_participants > 0', name='check_max_participants_positive'),
    sa.CheckConstraint(
        'current_participants >= 0 AND current_participants <= max_participants',
        name='check_participants_within_capacity'
    ),
    sa.CheckConstraint('end_time > start_time', name='check_end_after_start'),
    sa.CheckConstraint(
        "session_type IN ('ONE_TO_ONE', 'SMART_QUAD', 'MASTERCLASS')",
        name='check_session_type'
    ),
    sa.CheckConstraint(
        "status IN ('SCHEDULED', 'ONGOING', 'COMPLETED', 'CANCELLED')",
        name='check_session_status'
    ),
    sa.PrimaryKeyConstraint('id')
    )

    # Create session_enrollments table
    op.create_table('session_enrollments',
    sa.Column('confirmation_ref', sa.String(length=20), nullable=False),
    sa.Column('session_id', sa.String(length=36), nullable=False),
    sa.Column('participant_id', sa.String(length=36), nullable=False),
    sa.Column('enrolled_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['session_id'], ['sessions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('confirmation_ref'),
    sa.UniqueConstraint('session_id', 'participant_id', name='unique_session_participant')
    )

    # Create student_features table
    op.create_table('student_features',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('student_id', sa.String(length=36), nullable=False),
    sa.Column('feature_key', sa.String(length=50), nullable=False),
    sa.Column('enabled', sa.Boolean(), nullable=False, server_default='true'),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('student_id', 'feature_key', name='unique_student_feature')
    )

    # Create indexes for performance
    op.create_index('idx_sessions_start_time', 'sessions', ['start_time'], unique=False)
    op.create_index('idx_sessions_tutor', 'sessions', ['tutor_id'], unique=False)
    op.create_index('idx_sessions_type_course', 'sessions', ['session_type', 'course_type'], unique=False)
    op.create_index('idx_enrollments_participant', 'session_enrollments', ['participant_id'], unique=False)


def downgrade() -> None:
    # Drop indexes
    op.drop_index('idx_enrollments_participant', table_name='session_enrollments')
    op.drop_index('idx_sessions_type_course', table_name='sessions')
    op.drop_index('idx_sessions_tutor', table_name='sessions')
    op.drop_index('idx_sessions_start_time', table_name='sessions')

    # Drop tables
    op.drop_table('student_features')
    op.drop_table('session_enrollments')
    op.drop_table('sessions')
    op.drop_table('tutors')
