"""Relational database plumbing used by the SQLAlchemy storage adapter."""
