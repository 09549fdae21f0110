"""Services Layer — imperative shell around the pure core.

Invariants:
    - Services own every Membership and Answer write
    - Pure decisions are delegated to core/ functions

Design Decisions:
    - One class per component, constructed per request with the request's AsyncSession
"""
