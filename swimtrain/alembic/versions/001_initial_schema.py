"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates teams, users and sessions with their enum types and indexes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

team_role = sa.Enum('CAPTAIN', 'MEMBER', name='team_role')
workout_type = sa.Enum(
    'WARMUP', 'MAIN_SET', 'COOLDOWN', 'TECHNIQUE', 'SPRINT', 'ENDURANCE', 'KICK', 'PULL',
    name='workout_type',
)
stroke = sa.Enum(
    'FREESTYLE', 'BACKSTROKE', 'BREASTSTROKE', 'BUTTERFLY', 'INDIVIDUAL_MEDLEY', 'MIXED',
    name='stroke',
)
intensity = sa.Enum('EASY', 'MODERATE', 'HARD', 'RACE_PACE', 'RECOVERY', name='intensity')


def upgrade() -> None:
    op.create_table(
        'teams',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('avatar', sa.String(), nullable=True),
        sa.Column('invite_code', sa.String(16), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('username', sa.String(), nullable=False, unique=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('avatar', sa.String(), nullable=True),
        sa.Column('team_id', sa.String(64), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('role', team_role, nullable=False, server_default='MEMBER'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_users_team', 'users', ['team_id'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('distance', sa.Integer(), nullable=True),
        sa.Column('workout_type', workout_type, nullable=True),
        sa.Column('stroke', stroke, nullable=True),
        sa.Column('intensity', intensity, nullable=True),
        sa.Column('user_id', sa.String(64), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', sa.String(64), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('duration > 0', name='ck_sessions_duration_positive'),
        sa.CheckConstraint('distance IS NULL OR distance >= 0', name='ck_sessions_distance_non_negative'),
    )
    op.create_index('idx_sessions_user_date', 'sessions', ['user_id', 'date'])
    op.create_index('idx_sessions_team', 'sessions', ['team_id'])
    op.create_index('idx_sessions_created_at', 'sessions', ['created_at'])


def downgrade() -> None:
    op.drop_index('idx_sessions_created_at', table_name='sessions')
    op.drop_index('idx_sessions_team', table_name='sessions')
    op.drop_index('idx_sessions_user_date', table_name='sessions')
    op.drop_table('sessions')
    op.drop_index('idx_users_team', table_name='users')
    op.drop_table('users')
    op.drop_table('teams')

    bind = op.get_bind()
    for enum_type in (intensity, stroke, workout_type, team_role):
        enum_type.drop(bind, checkfirst=True)
