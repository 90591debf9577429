"""
API route package

Router modules:
- health: health check
- ledgers: ledger open/list, entries, grid, balance, integrity, active RP
- entries: single entry, edit history, annotations
"""
