"""storecheck test suite.

Folder taxonomy
- unit/         : Isolated, fast checks of one module (paths, MIME, retry, config, logging).
- contract/     : The conformance suite and properties run against every reference adapter.
- integration/  : Adapters against real backends (local filesystem, SQLite, PostgreSQL).
- functional/   : The conformance plugin driven end-to-end in pytester sub-sessions.
- fixtures/     : Engine fixtures loaded through ``pytest_plugins`` (no tests here).

General guidance
- Keep unit fast and deterministic; no filesystem or database beyond tmp_path.
- Integration tests skip when their backend is unavailable.
- Contract tests parametrize adapters so every backend gets the same checks.
- Property-based tests use @pytest.mark.property.
- Markers: unit, contract, integration, functional, property, slow
"""
