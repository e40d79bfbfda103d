"""
Core modules for Asset Ledger.

This package contains the asset store, the change ledger, the field diff
helpers and the error taxonomy shared by every caller.
"""
