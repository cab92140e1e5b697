"""storecheck

A conformance harness for storage adapters. It defines the storage-adapter
contract, ships reference adapters (memory, local disk, SQLAlchemy), and
provides a pytest base class that validates any backend against the contract.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
