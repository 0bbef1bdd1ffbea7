"""
Bank Ledger

A small account ledger with an atomic transaction engine, per-account
locking, proper financial math using Decimal, and paginated history.
"""

__version__ = "1.0.0"
