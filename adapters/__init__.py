"""
Adapter layer

Integration with external resources. The register ledger only needs the
SQLite persistence adapter.
"""
