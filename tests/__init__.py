"""
Test Suite for the Smart Library API

Test Organization:
- conftest.py: Shared fixtures (catalogs, stubs, service, client, sample data)
- test_normalizer.py: Query normalization and clamping
- test_catalogs.py: Memory and SQL catalog adapters (ranking, filters, lookups)
- test_elasticsearch_catalog.py: Elasticsearch query DSL and adapter behavior
- test_retriever.py: Candidate sets, hot and related listings
- test_completion.py: Completion service client
- test_recommendations.py: Validation gate, fallbacks, book questions
- test_cache.py: Cache keys, stores and cache-aside behavior
- test_library.py: LibraryService operations
- test_api.py: HTTP endpoints

Running Tests:
    # Run all tests
    pytest

    # Run with coverage
    pytest --cov=library_api --cov-report=html

    # Run specific file
    pytest tests/test_catalogs.py

    # Run with verbose output
    pytest -v
"""
