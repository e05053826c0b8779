"""
Services Package

This package contains business logic services that are:
- Separate from HTTP handling (routers)
- Reusable across different parts of the application
- Easier to test in isolation

Current services:
- normalizer.py: Query cleanup, script variants and page clamping
- retriever.py: Ranked candidate sets, hot and related listings
- completion.py: HTTP client for the chat-completion service
- prompts.py: Prompt templates for recommendations and book questions
- recommendations.py: Model picks, validation gate and fallbacks
- cache.py: Cache stores and cache-aside memoization
- library.py: LibraryService, the facade used by the routers
"""
