"""create_competition_tables

Revision ID: 001_competition_tables
Revises:
Create Date: 2026-10-17

Creates competitions, participants, archives and the reward bookkeeping
tables. The unique constraints on competitions.name,
competition_archives.season_id and (competition_id, user_id) back the
idempotent auto-creation, at-most-once finalization and idempotent join.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_competition_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'competitions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='UPCOMING'),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('registration_start_date', sa.DateTime(), nullable=True),
        sa.Column('registration_end_date', sa.DateTime(), nullable=True),
        sa.Column('min_participants', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_participants', sa.Integer(), nullable=True),
        sa.Column('included_categories', postgresql.JSONB(), nullable=False,
                  server_default=sa.text("'[]'::jsonb")),
        sa.Column('rewards', postgresql.JSONB(), nullable=True),
        sa.Column('scoring_rules', postgresql.JSONB(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('auto_enroll', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint('name', name='uq_competitions_name'),
        sa.CheckConstraint('end_date > start_date', name='chk_competition_dates'),
        sa.CheckConstraint(
            'registration_end_date IS NULL OR registration_end_date <= start_date',
            name='chk_competition_registration',
        ),
    )
    op.create_index('idx_competitions_status_start', 'competitions', ['status', 'start_date'])
    op.create_index('idx_competitions_status_end', 'competitions', ['status', 'end_date'])
    op.create_index('idx_competitions_type', 'competitions', ['type'])

    op.create_table(
        'competition_participants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('competition_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('competitions.id'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('total_score', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('overall_rank', sa.Integer(), nullable=True),
        sa.Column('category_scores', postgresql.JSONB(), nullable=False,
                  server_default=sa.text("'{}'::jsonb")),
        sa.Column('category_ranks', postgresql.JSONB(), nullable=False,
                  server_default=sa.text("'{}'::jsonb")),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('auto_enrolled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('enrolled_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_score >= 0', name='chk_participant_score_non_negative'),
        sa.UniqueConstraint('competition_id', 'user_id', name='uq_participant_competition_user'),
    )
    op.create_index('idx_participants_competition_rank', 'competition_participants',
                    ['competition_id', 'overall_rank'])
    op.create_index('idx_participants_competition_score', 'competition_participants',
                    ['competition_id', 'total_score'])
    op.create_index('idx_participants_user', 'competition_participants', ['user_id'])

    op.create_table(
        'competition_archives',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('season_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('competitions.id'), nullable=False),
        sa.Column('season_name', sa.String(255), nullable=False),
        sa.Column('season_type', sa.String(20), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('final_rankings', postgresql.JSONB(), nullable=False),
        sa.Column('participant_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rewards_distributed', postgresql.JSONB(), nullable=False,
                  server_default=sa.text("'[]'::jsonb")),
        sa.Column('season_stats', postgresql.JSONB(), nullable=False,
                  server_default=sa.text("'{}'::jsonb")),
        sa.Column('archived_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('archive_version', sa.Integer(), nullable=False, server_default='1'),
        sa.UniqueConstraint('season_id', name='uq_competition_archives_season'),
    )
    op.create_index('idx_archives_archived_at', 'competition_archives', ['archived_at'])

    op.create_table(
        'reward_distributions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('source_type', sa.String(40), nullable=False),
        sa.Column('source_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(255), nullable=False),
        sa.Column('reward_name', sa.String(255), nullable=False),
        sa.Column('reward_type', sa.String(20), nullable=False),
        sa.Column('reward_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('distributed_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_reward_distributions_user', 'reward_distributions',
                    ['user_id', 'distributed_at'])
    op.create_index('idx_reward_distributions_source', 'reward_distributions',
                    ['source_type', 'source_id'])

    op.create_table(
        'reward_inventory',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reward_type', sa.String(20), nullable=False),
        sa.Column('reward_name', sa.String(255), nullable=False),
        sa.Column('reward_value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('source_type', sa.String(40), nullable=False),
        sa.Column('source_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_reward_inventory_user', 'reward_inventory', ['user_id'])

    op.create_table(
        'experience_profiles',
        sa.Column('user_id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('experience_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('experience_level', sa.String(20), nullable=False, server_default='BEGINNER'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('active_days', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_active_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table('experience_profiles')
    op.drop_index('idx_reward_inventory_user', table_name='reward_inventory')
    op.drop_table('reward_inventory')
    op.drop_index('idx_reward_distributions_source', table_name='reward_distributions')
    op.drop_index('idx_reward_distributions_user', table_name='reward_distributions')
    op.drop_table('reward_distributions')
    op.drop_index('idx_archives_archived_at', table_name='competition_archives')
    op.drop_table('competition_archives')
    op.drop_index('idx_participants_user', table_name='competition_participants')
    op.drop_index('idx_participants_competition_score', table_name='competition_participants')
    op.drop_index('idx_participants_competition_rank', table_name='competition_participants')
    op.drop_table('competition_participants')
    op.drop_index('idx_competitions_type', table_name='competitions')
    op.drop_index('idx_competitions_status_end', table_name='competitions')
    op.drop_index('idx_competitions_status_start', table_name='competitions')
    op.drop_table('competitions')
