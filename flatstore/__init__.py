"""
Flatstore

Variable-length binary record storage for bank accounts and book catalogs,
persisted in a single flat file with no database engine. All monetary
values use Decimal.
"""

__version__ = "1.0.0"
