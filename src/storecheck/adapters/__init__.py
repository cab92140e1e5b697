"""Adapters (infrastructure) for storecheck.

Provide concrete implementations of the storage contract (memory, local disk,
relational database) plus the persistence wiring they need (engines, metadata,
column types).

Dependency rule: may import `storecheck.interfaces`; interfaces must not import
this package.
"""
