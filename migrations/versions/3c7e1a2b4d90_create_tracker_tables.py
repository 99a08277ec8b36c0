"""create grade tracking, schedule and study plan tables

Revision ID: 3c7e1a2b4d90
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c7e1a2b4d90'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=True),
        sa.Column('email', sa.String(length=128), nullable=True),
        sa.Column('password_hash', sa.String(length=256), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=True),
        sa.Column('grade', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('username'),
    )

    op.create_table(
        'subjects',
        sa.Column('subject_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('created_by_fk', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by_fk'], ['users.user_id']),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'evaluation_categories',
        sa.Column('category_id', sa.Integer(), primary_key=True),
        sa.Column('subject_id_fk', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('weight', sa.Float(), nullable=False),
        sa.Column('max_score', sa.Float(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('created_by_fk', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['subject_id_fk'], ['subjects.subject_id']),
        sa.ForeignKeyConstraint(['created_by_fk'], ['users.user_id']),
    )

    op.create_table(
        'score_entries',
        sa.Column('entry_id', sa.Integer(), primary_key=True),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('subject_id_fk', sa.Integer(), nullable=False),
        sa.Column('category_id_fk', sa.Integer(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('exam_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id_fk'], ['users.user_id']),
        sa.ForeignKeyConstraint(['subject_id_fk'], ['subjects.subject_id']),
        sa.ForeignKeyConstraint(['category_id_fk'], ['evaluation_categories.category_id']),
        sa.UniqueConstraint(
            'student_id_fk',
            'subject_id_fk',
            'category_id_fk',
            name='uq_score_entry_student_subject_category',
        ),
    )

    op.create_table(
        'computed_grades',
        sa.Column('grade_id', sa.Integer(), primary_key=True),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('subject_id_fk', sa.Integer(), nullable=False),
        sa.Column('exam_type', sa.String(length=64), nullable=False),
        sa.Column('final_score', sa.Float(), nullable=False),
        sa.Column('written_score', sa.Float(), nullable=True),
        sa.Column('performance_score', sa.Float(), nullable=True),
        sa.Column('component_scores_json', sa.Text(), nullable=True),
        sa.Column('exam_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id_fk'], ['users.user_id']),
        sa.ForeignKeyConstraint(['subject_id_fk'], ['subjects.subject_id']),
    )

    op.create_table(
        'study_plans',
        sa.Column('plan_id', sa.Integer(), primary_key=True),
        sa.Column('student_id_fk', sa.Integer(), nullable=False),
        sa.Column('subject', sa.String(length=128), nullable=False),
        sa.Column('current_score', sa.Float(), nullable=False),
        sa.Column('target_score', sa.Float(), nullable=False),
        sa.Column('time_frame_weeks', sa.Integer(), nullable=False),
        sa.Column('difficulty', sa.String(length=16), nullable=False),
        sa.Column('total_study_hours', sa.Integer(), nullable=False),
        sa.Column('weekly_hours', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['student_id_fk'], ['users.user_id']),
    )

    op.create_table(
        'exam_schedules',
        sa.Column('exam_id', sa.Integer(), primary_key=True),
        sa.Column('subject', sa.String(length=128), nullable=False),
        sa.Column('exam_type', sa.String(length=64), nullable=False),
        sa.Column('exam_date', sa.Date(), nullable=False),
        sa.Column('grade', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by_fk', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by_fk'], ['users.user_id']),
    )

    op.create_table(
        'assignment_schedules',
        sa.Column('assignment_id', sa.Integer(), primary_key=True),
        sa.Column('subject', sa.String(length=128), nullable=False),
        sa.Column('assignment_name', sa.String(length=128), nullable=False),
        sa.Column('assignment_type', sa.String(length=64), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('grade', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('max_score', sa.Float(), nullable=True),
        sa.Column('created_by_fk', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['created_by_fk'], ['users.user_id']),
    )


def downgrade():
    op.drop_table('assignment_schedules')
    op.drop_table('exam_schedules')
    op.drop_table('study_plans')
    op.drop_table('computed_grades')
    op.drop_table('score_entries')
    op.drop_table('evaluation_categories')
    op.drop_table('subjects')
    op.drop_table('users')
