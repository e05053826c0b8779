"""
SQLAlchemy Models Package

Importing the package registers every table with Base.metadata, which
Alembic and create_tables() rely on.
"""

from library_api.models.book import Book, compose_search_text

__all__ = ["Book", "compose_search_text"]
