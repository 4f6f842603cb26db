"""create users, user_stats, game_matches, game_moves, transactions

Revision ID: 4c7a9e21b0d3
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7a9e21b0d3'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(18, 8)


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())
    # Databases bootstrapped with `flask db-reset` already have everything
    if 'users' in existing_tables:
        return

    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('nickname', sa.String(64), nullable=False),
        sa.Column('email', sa.String(120), nullable=True),
        sa.Column('auth_provider', sa.String(16), nullable=False),
        sa.Column('balance', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'user_stats',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('total_games', sa.Integer(), nullable=False),
        sa.Column('total_wins', sa.Integer(), nullable=False),
        sa.Column('total_losses', sa.Integer(), nullable=False),
        sa.Column('total_earned', MONEY, nullable=False),
        sa.Column('games_played', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'game_matches',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('game_type', sa.String(16), nullable=False),
        sa.Column('stake', MONEY, nullable=False),
        sa.Column('player1_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('player2_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('winner_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('state', sa.String(16), nullable=False),
        sa.Column('setup', sa.Text(), nullable=True),
        sa.Column('game_data', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('player2_id IS NULL OR player2_id != player1_id', name='ck_match_distinct_players'),
    )
    op.create_index('ix_game_matches_game_type', 'game_matches', ['game_type'])
    op.create_index('ix_game_matches_state', 'game_matches', ['state'])

    op.create_table(
        'game_moves',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('match_id', sa.String(36), sa.ForeignKey('game_matches.id'), nullable=False),
        sa.Column('player_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('move_number', sa.Integer(), nullable=False),
        sa.Column('move_data', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('match_id', 'move_number', name='uq_move_match_number'),
    )
    op.create_index('ix_game_moves_match_id', 'game_moves', ['match_id'])

    op.create_table(
        'transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('match_id', sa.String(36), sa.ForeignKey('game_matches.id'), nullable=True),
        sa.Column('type', sa.String(16), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])


def downgrade():
    op.drop_table('transactions')
    op.drop_table('game_moves')
    op.drop_table('game_matches')
    op.drop_table('user_stats')
    op.drop_table('users')
