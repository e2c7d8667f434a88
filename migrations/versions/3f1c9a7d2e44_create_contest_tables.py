"""create contest tables

Revision ID: 3f1c9a7d2e44
Revises: 
Create Date: 2026-10-17 09:12:44.503118

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f1c9a7d2e44'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('notification_channels',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('type', sa.String(length=20), nullable=False),
    sa.Column('config', sa.JSON(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('api_keys',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('prefix', sa.String(length=12), nullable=False),
    sa.Column('key_hash', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('last_used_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('api_keys', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_api_keys_prefix'), ['prefix'], unique=False)

    op.create_table('contests',
    sa.Column('id', sa.String(length=32), nullable=False),
    sa.Column('title', sa.String(length=200), nullable=False),
    sa.Column('options', sa.JSON(), nullable=False),
    sa.Column('admin_secret_hash', sa.String(length=255), nullable=False),
    sa.Column('voting_secret_hash', sa.String(length=255), nullable=True),
    sa.Column('voter_names_required', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('closed_at', sa.DateTime(), nullable=True),
    sa.Column('auto_close_at', sa.DateTime(), nullable=True),
    sa.Column('channel_id', sa.Integer(), nullable=True),
    sa.Column('source_contest_id', sa.String(length=32), nullable=True),
    sa.ForeignKeyConstraint(['channel_id'], ['notification_channels.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('ballots',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('contest_id', sa.String(length=32), nullable=False),
    sa.Column('rankings', sa.JSON(), nullable=False),
    sa.Column('voter_name', sa.String(length=200), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('ballots', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_ballots_contest_id'), ['contest_id'], unique=False)

    op.create_table('contest_notification_states',
    sa.Column('contest_id', sa.String(length=32), nullable=False),
    sa.Column('open_notified_at', sa.DateTime(), nullable=True),
    sa.Column('closed_notified_at', sa.DateTime(), nullable=True),
    sa.Column('tie_runoff_checked_at', sa.DateTime(), nullable=True),
    sa.Column('tie_runoff_contest_id', sa.String(length=32), nullable=True),
    sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ),
    sa.PrimaryKeyConstraint('contest_id')
    )
    op.create_table('contest_recurrences',
    sa.Column('contest_id', sa.String(length=32), nullable=False),
    sa.Column('group_id', sa.String(length=64), nullable=False),
    sa.Column('period_days', sa.Integer(), nullable=False),
    sa.Column('vote_duration_hours', sa.Integer(), nullable=False),
    sa.Column('start_at', sa.DateTime(), nullable=False),
    sa.Column('id_format', sa.String(length=100), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=False),
    sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ),
    sa.PrimaryKeyConstraint('contest_id'),
    sa.UniqueConstraint('group_id', 'start_at', name='uq_recurrence_group_start')
    )
    with op.batch_alter_table('contest_recurrences', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_contest_recurrences_group_id'), ['group_id'], unique=False)


def downgrade():
    with op.batch_alter_table('contest_recurrences', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_contest_recurrences_group_id'))

    op.drop_table('contest_recurrences')
    op.drop_table('contest_notification_states')
    with op.batch_alter_table('ballots', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_ballots_contest_id'))

    op.drop_table('ballots')
    op.drop_table('contests')
    with op.batch_alter_table('api_keys', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_api_keys_prefix'))

    op.drop_table('api_keys')
    op.drop_table('notification_channels')
