"""API Layer — FastAPI routers, dependencies and global error handlers.

Invariants:
    - Routes translate HTTP to service calls; no business rules live here
"""
