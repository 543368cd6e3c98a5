"""teacher accounts, team session records and session analytics

Revision ID: 5b7c1d2e9f30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7c1d2e9f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'team_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_code', sa.String(length=16), nullable=False),
        sa.Column('team_id', sa.String(length=64), nullable=False),
        sa.Column('team_name', sa.String(length=64), nullable=False),
        sa.Column('team_color', sa.String(length=32), nullable=False),
        sa.Column('player_names', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='online'),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_team_session_room_code', 'team_session', ['room_code'])
    op.create_index('ix_team_session_team_id', 'team_session', ['team_id'])
    op.create_index('ix_team_session_last_seen_at', 'team_session', ['last_seen_at'])
    op.create_index('ix_team_session_expires_at', 'team_session', ['expires_at'])

    op.create_table(
        'session_analytics',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_code', sa.String(length=16), nullable=False),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('class_average_score', sa.Float(), nullable=True),
        sa.Column('class_average_accuracy', sa.Float(), nullable=True),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_session_analytics_room_code', 'session_analytics', ['room_code'])
    op.create_index('ix_session_analytics_teacher_id', 'session_analytics', ['teacher_id'])


def downgrade():
    op.drop_index('ix_session_analytics_teacher_id', table_name='session_analytics')
    op.drop_index('ix_session_analytics_room_code', table_name='session_analytics')
    op.drop_table('session_analytics')
    op.drop_index('ix_team_session_expires_at', table_name='team_session')
    op.drop_index('ix_team_session_last_seen_at', table_name='team_session')
    op.drop_index('ix_team_session_team_id', table_name='team_session')
    op.drop_index('ix_team_session_room_code', table_name='team_session')
    op.drop_table('team_session')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
