#!/usr/bin/env python3
"""
Elasticsearch Reindex Script

This script copies all books from the SQL catalog into Elasticsearch.

Usage:
    # From project root with venv activated:
    python scripts/reindex_elasticsearch.py

    # Options:
    python scripts/reindex_elasticsearch.py --drop   # Delete the index before reindexing
    python scripts/reindex_elasticsearch.py --batch-size 100  # Rows per bulk request
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from library_api.catalog.elasticsearch import ElasticsearchCatalog
from library_api.config import get_settings
from library_api.database import create_catalog_engine, create_session_factory
from library_api.models.book import Book
from library_api.schemas.book import CatalogItem

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def reindex_all_books(drop_index: bool = False, batch_size: int = 100) -> int:
    """
    Copy every catalog row into the Elasticsearch index.

    Rows are streamed from the database in partitions of `batch_size` and
    each partition is sent as one bulk request.

    Returns:
        Number of documents that failed to index
    """
    settings = get_settings()
    index = ElasticsearchCatalog.from_url(
        settings.elasticsearch_url,
        f"{settings.elasticsearch_index_prefix}books",
        timeout=settings.elasticsearch_timeout,
    )
    engine = create_catalog_engine(settings)
    session_factory = create_session_factory(engine)

    try:
        if not await index.ping():
            logger.error(f"Elasticsearch at {settings.elasticsearch_url} is not reachable")
            return 1

        if drop_index:
            await index.delete_index()
        await index.create_index()

        indexed = failed = 0
        with session_factory() as db:
            result = db.execute(
                select(Book).order_by(Book.id).execution_options(yield_per=batch_size)
            )
            for batch_num, partition in enumerate(result.scalars().partitions(), start=1):
                documents = [(CatalogItem.model_validate(book), book.search_text) for book in partition]
                success, errors = await index.bulk_index(documents)
                indexed += success
                failed += errors
                logger.info(f"Batch {batch_num}: {success} indexed, {errors} failed")

        if indexed == 0 and failed == 0:
            logger.warning("The SQL catalog is empty, nothing to index")
        logger.info(f"Reindex of {index.index_name} complete: {indexed} indexed, {failed} failed")
        return failed
    finally:
        engine.dispose()
        await index.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Copy the SQL catalog into Elasticsearch")
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Delete the index before reindexing",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Rows per bulk request (default: 100)",
    )
    args = parser.parse_args()

    failed = asyncio.run(reindex_all_books(drop_index=args.drop, batch_size=args.batch_size))
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
