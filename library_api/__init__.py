"""
Smart Library API Package

Request-time search and recommendation engine for a library catalog.

Package Structure:
- config.py: Application configuration using Pydantic Settings
- database.py: SQLAlchemy engine and session factory for the SQL catalog
- exceptions.py: Error taxonomy shared by the core and the HTTP layer
- main.py: FastAPI application factory and lifespan wiring
- dependencies.py: Dependency injection functions
- models/: SQLAlchemy ORM models (the books table)
- schemas/: Pydantic models for catalog items, searches and recommendations
- catalog/: Catalog query interface and its storage adapters
- services/: Normalizer, retriever, recommendation orchestrator, caching
- routers/: API route handlers
"""

__version__ = "2.1.0"
