"""create_books_table

Revision ID: 3c9d2e7f1a04
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9d2e7f1a04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'books',
        sa.Column('id', sa.String(length=64), nullable=False, comment='Catalog identifier'),
        sa.Column('title', sa.String(length=500), nullable=False, comment='Book title'),
        sa.Column('author', sa.String(length=255), nullable=False, comment='Author name(s) as catalogued'),
        sa.Column('publisher', sa.String(length=255), nullable=False, comment='Publisher'),
        sa.Column('subject', sa.String(length=255), nullable=False, comment='Subject / category'),
        sa.Column('language', sa.String(length=50), nullable=False, comment='Language of the holding'),
        sa.Column('callno', sa.String(length=100), nullable=True, comment='Shelf call number'),
        sa.Column('popularity', sa.Float(), nullable=False, comment='Curated popularity score'),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0', comment='Number of detail views'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='available', comment='Availability status'),
        sa.Column('search_text', sa.Text(), nullable=False, comment='Precomputed full-text search field'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_books_title'), 'books', ['title'], unique=False)
    op.create_index(op.f('ix_books_author'), 'books', ['author'], unique=False)
    op.create_index(op.f('ix_books_subject'), 'books', ['subject'], unique=False)
    op.create_index(op.f('ix_books_language'), 'books', ['language'], unique=False)
    op.create_index(op.f('ix_books_popularity'), 'books', ['popularity'], unique=False)

    # Full-text index matching the catalog's to_tsvector('simple', search_text) expression
    if op.get_bind().dialect.name == 'postgresql':
        op.execute(
            "CREATE INDEX ix_books_search_text_fts ON books "
            "USING gin (to_tsvector('simple', search_text))"
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("DROP INDEX IF EXISTS ix_books_search_text_fts")
    op.drop_index(op.f('ix_books_popularity'), table_name='books')
    op.drop_index(op.f('ix_books_language'), table_name='books')
    op.drop_index(op.f('ix_books_subject'), table_name='books')
    op.drop_index(op.f('ix_books_author'), table_name='books')
    op.drop_index(op.f('ix_books_title'), table_name='books')
    op.drop_table('books')
