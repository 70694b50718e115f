"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

IN_PROGRESS_ONLY = sa.text("status = 'IN_PROGRESS'")


def upgrade():
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('document', sa.JSON(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('created_by', sa.String(64), nullable=True),
        sa.Column('total_assessments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email')
    )
    op.create_index('ix_users_created_by', 'users', ['created_by'])

    # Create the exactly-once ledger of completed attempts
    op.create_table(
        'academic_contributions',
        sa.Column('attempt_id', sa.String(64), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('applied_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('attempt_id', name='pk_academic_contributions'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_academic_contributions_user_id_users')
    )
    op.create_index('ix_academic_contributions_user_id', 'academic_contributions', ['user_id'])

    # Create questions table
    op.create_table(
        'questions',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('document', sa.JSON(), nullable=False),
        sa.Column('subject', sa.String(100), nullable=False),
        sa.Column('topic', sa.String(100), nullable=False),
        sa.Column('difficulty', sa.String(16), nullable=False),
        sa.Column('question_type', sa.String(32), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_questions')
    )
    op.create_index('ix_questions_topic', 'questions', ['topic'])
    op.create_index('ix_questions_difficulty', 'questions', ['difficulty'])

    # Create assessments table
    op.create_table(
        'assessments',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('document', sa.JSON(), nullable=False),
        sa.Column('subject', sa.String(100), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_assessments')
    )
    op.create_index('ix_assessments_subject', 'assessments', ['subject'])

    # Create attempts table
    op.create_table(
        'attempts',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('document', sa.JSON(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('assessment_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_attempts'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_attempts_user_id_users'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], name='fk_attempts_assessment_id_assessments')
    )
    op.create_index('ix_attempts_user_id', 'attempts', ['user_id'])
    op.create_index('ix_attempts_assessment_id', 'attempts', ['assessment_id'])
    op.create_index('ix_attempts_status', 'attempts', ['status'])

    # At most one IN_PROGRESS attempt per (user, assessment)
    op.create_index(
        'uq_attempts_one_in_progress',
        'attempts',
        ['user_id', 'assessment_id'],
        unique=True,
        sqlite_where=IN_PROGRESS_ONLY,
        postgresql_where=IN_PROGRESS_ONLY
    )


def downgrade():
    op.drop_index('uq_attempts_one_in_progress', table_name='attempts')
    op.drop_table('attempts')
    op.drop_table('assessments')
    op.drop_table('questions')
    op.drop_table('academic_contributions')
    op.drop_table('users')
