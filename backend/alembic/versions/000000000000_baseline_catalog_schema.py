"""baseline_catalog_schema

Revision ID: 000000000000
Revises:
Create Date: 2026-09-28 00:00:00.000000

Catalog tables owned by the reading app. Databases that already have them
should be stamped at this revision (`alembic stamp 000000000000`).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'novels',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('author', sa.String(), nullable=True),
        sa.Column('synopsis', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('chapter_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'genres',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
    )

    op.create_table(
        'novel_genres',
        sa.Column('novel_id', sa.Integer(), sa.ForeignKey('novels.id'), primary_key=True),
        sa.Column('genre_id', sa.Integer(), sa.ForeignKey('genres.id'), primary_key=True),
    )

    op.create_table(
        'chapters',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('novel_id', sa.Integer(), sa.ForeignKey('novels.id'), nullable=False),
        sa.Column('chapter_number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
    )
    op.create_index('ix_chapters_novel_id', 'chapters', ['novel_id'])

    op.create_table(
        'reading_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('novel_id', sa.Integer(), sa.ForeignKey('novels.id'), nullable=False),
        sa.Column('chapter_id', sa.Integer(), sa.ForeignKey('chapters.id'), nullable=True),
        sa.Column('reading_time', sa.Integer(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_reading_history_user_id', 'reading_history', ['user_id'])
    op.create_index('ix_reading_history_novel_id', 'reading_history', ['novel_id'])
    op.create_index('ix_reading_history_read_at', 'reading_history', ['read_at'])

    op.create_table(
        'user_library',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('novel_id', sa.Integer(), sa.ForeignKey('novels.id'), nullable=False),
        sa.Column('reading_status', sa.String(), nullable=False, server_default='plan_to_read'),
        sa.Column('last_read_chapter', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('added_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'novel_id', name='uq_user_library_user_novel'),
    )
    op.create_index('ix_user_library_user_id', 'user_library', ['user_id'])
    op.create_index('ix_user_library_novel_id', 'user_library', ['novel_id'])

    op.create_table(
        'novel_tags',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('novel_id', sa.Integer(), sa.ForeignKey('novels.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('tag_name', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_novel_tags_novel_id', 'novel_tags', ['novel_id'])
    op.create_index('ix_novel_tags_tag_name', 'novel_tags', ['tag_name'])

    op.create_table(
        'tag_votes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tag_id', sa.Integer(), sa.ForeignKey('novel_tags.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.UniqueConstraint('tag_id', 'user_id', name='uq_tag_votes_tag_user'),
    )
    op.create_index('ix_tag_votes_tag_id', 'tag_votes', ['tag_id'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('novel_id', sa.Integer(), sa.ForeignKey('novels.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_reviews_novel_id', 'reviews', ['novel_id'])


def downgrade() -> None:
    op.drop_index('ix_reviews_novel_id', table_name='reviews')
    op.drop_table('reviews')
    op.drop_index('ix_tag_votes_tag_id', table_name='tag_votes')
    op.drop_table('tag_votes')
    op.drop_index('ix_novel_tags_tag_name', table_name='novel_tags')
    op.drop_index('ix_novel_tags_novel_id', table_name='novel_tags')
    op.drop_table('novel_tags')
    op.drop_index('ix_user_library_novel_id', table_name='user_library')
    op.drop_index('ix_user_library_user_id', table_name='user_library')
    op.drop_table('user_library')
    op.drop_index('ix_reading_history_read_at', table_name='reading_history')
    op.drop_index('ix_reading_history_novel_id', table_name='reading_history')
    op.drop_index('ix_reading_history_user_id', table_name='reading_history')
    op.drop_table('reading_history')
    op.drop_index('ix_chapters_novel_id', table_name='chapters')
    op.drop_table('chapters')
    op.drop_table('novel_genres')
    op.drop_table('genres')
    op.drop_table('novels')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
