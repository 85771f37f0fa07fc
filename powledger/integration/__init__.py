# Integration Module
"""
Process-level wiring of the ledger:
- Background flush scheduler with a blocking shutdown handshake
- LedgerNode tying together mining, chain store, storage and API
"""

# Lazy imports to avoid RuntimeWarning when running module directly
def __getattr__(name):
    """Lazy import to avoid circular import issues."""
    from . import flush_scheduler, node
    for module in (node, flush_scheduler):
        if hasattr(module, name):
            return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    'FlushScheduler',
    'LedgerNode',
    'DEFAULT_FLUSH_INTERVAL',
    'DEFAULT_FLUSH_RETRIES',
    'DEFAULT_FLUSH_BACKOFF',
]
