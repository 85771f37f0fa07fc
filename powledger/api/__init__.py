# API Module
"""
Public query and mutation surface of the ledger:
- Block lookups by chain position and by range
- Transaction publishing into the pending pool

Validation features:
- Hex addresses checked for encoding and 32-byte length
- Amounts checked against the unsigned 64-bit range
- Internal lookup errors surfaced as typed ApiError values
"""

# Lazy imports to avoid RuntimeWarning when running module directly
def __getattr__(name):
    """Lazy import to avoid circular import issues."""
    from . import facade
    return getattr(facade, name)

__all__ = [
    'LedgerAPI',
    'block_view',
    'payload_view',
    'parse_address',
    'parse_amount',
]
