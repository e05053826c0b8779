#!/usr/bin/env python3
"""
Database Seed Script

Loads a JSON catalog file into the SQL books table.

USAGE:
    # Make sure you're in the project root with venv activated
    python scripts/seed_data.py                      # uses settings.catalog_json_path
    python scripts/seed_data.py data/books.json --keep

This script:
1. Connects to the database using app settings
2. Creates the books table if it does not exist
3. Clears existing books (unless --keep)
4. Inserts or updates one row per record, with its search_text
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import delete
from sqlalchemy.orm import Session

from library_api.catalog.memory import parse_record, read_records
from library_api.config import get_settings
from library_api.database import create_catalog_engine, create_session_factory, create_tables
from library_api.models import Book


def clear_data(db: Session) -> None:
    """Clear all existing books from the database."""
    print("Clearing existing books...")
    db.execute(delete(Book))
    db.commit()
    print("Data cleared.")


def load_books(db: Session, path: Path) -> int:
    """Insert or update every record of the JSON file. Returns the row count."""
    print(f"Loading books from {path}...")
    count = 0
    for record in read_records(path):
        item, search_text = parse_record(record)
        db.merge(Book(**item.model_dump(), search_text=search_text))
        count += 1
    db.commit()
    print(f"Loaded {count} books.")
    return count


def seed_database(path: Path, clear_existing: bool = True) -> None:
    """
    Main function to seed the database.

    Args:
        path: JSON catalog file
        clear_existing: If True, clears existing books before seeding.
    """
    print("=" * 60)
    print("Starting database seed...")
    print("=" * 60)

    settings = get_settings()
    engine = create_catalog_engine(settings)

    # Create tables if they don't exist
    create_tables(engine)

    session_factory = create_session_factory(engine)
    db = session_factory()

    try:
        if clear_existing:
            clear_data(db)

        count = load_books(db, path)

        print("=" * 60)
        print("Database seeding completed successfully!")
        print("=" * 60)
        print(f"\nSummary:")
        print(f"  - Books: {count}")
        print(f"\nYou can now access the API at http://localhost:{settings.port}")
        print(f"API documentation at http://localhost:{settings.port}/docs")

    except Exception as e:
        print(f"Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()
        engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Load a JSON catalog into the SQL database")
    parser.add_argument(
        "path",
        nargs="?",
        default=None,
        help="JSON catalog file (default: settings.catalog_json_path)",
    )
    parser.add_argument(
        "--keep",
        action="store_true",
        help="Keep existing books instead of clearing the table first",
    )
    args = parser.parse_args()

    path = Path(args.path or get_settings().catalog_json_path)
    seed_database(path, clear_existing=not args.keep)


if __name__ == "__main__":
    main()
