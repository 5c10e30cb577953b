"""create game_session, player and response tables

Revision ID: 4c2d9a7e1b10
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2d9a7e1b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'game_session' not in existing_tables:
        op.create_table(
            'game_session',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('room_code', sa.String(length=12), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
            sa.Column('current_question_index', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('timer_started_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('question_set_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint('current_question_index >= 1', name='ck_session_question_index'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_game_session_room_code', 'game_session', ['room_code'], unique=True)

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint('score >= 0', name='ck_player_score_non_negative'),
            sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_player_session_id', 'player', ['session_id'])

    if 'response' not in existing_tables:
        op.create_table(
            'response',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.Integer(), nullable=False),
            sa.Column('player_id', sa.Integer(), nullable=False),
            sa.Column('question_index', sa.Integer(), nullable=False),
            sa.Column('kind', sa.String(length=16), nullable=False),
            sa.Column('selected_option', sa.Integer(), nullable=True),
            sa.Column('is_correct', sa.Boolean(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint(
                "(kind = 'answered' AND selected_option BETWEEN 0 AND 3) "
                "OR (kind = 'timed_out' AND selected_option IS NULL AND is_correct = false)",
                name='ck_response_kind_option',
            ),
            sa.ForeignKeyConstraint(['player_id'], ['player.id']),
            sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('player_id', 'question_index', name='uq_response_player_question'),
        )
        op.create_index('ix_response_session_id', 'response', ['session_id'])
        op.create_index('ix_response_session_question', 'response', ['session_id', 'question_index'])


def downgrade():
    op.drop_index('ix_response_session_question', table_name='response')
    op.drop_index('ix_response_session_id', table_name='response')
    op.drop_table('response')
    op.drop_index('ix_player_session_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_game_session_room_code', table_name='game_session')
    op.drop_table('game_session')
