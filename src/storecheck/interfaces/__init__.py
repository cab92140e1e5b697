"""Interfaces (adapter boundary) for storecheck.

Defines framework-free contracts: the `StorageAdapter` ABC, its small value
types, and the error hierarchy shared by adapters and the conformance suite.

Dependency rule: this package is independent; do not import from any other
`storecheck.*` modules. It may be imported by `storecheck.adapters` and
`storecheck.conformance`.
"""
