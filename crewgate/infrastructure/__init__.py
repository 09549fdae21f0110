"""Infrastructure Layer — database, logging, Anthropic client, background tasks.

Invariants:
    - Infrastructure may import core/ (errors, types) but never services/ or api/

Design Decisions:
    - Singletons (db_manager, task_registry) initialized by the FastAPI lifespan,
      never at import time
"""
