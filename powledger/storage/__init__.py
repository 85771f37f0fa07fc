# Block Storage Module
"""
Durable block persistence including:
- Length-delimited binary block records
- Content-addressed file names (block<hex-hash>)
- Atomic, idempotent writes
- Startup replay into the chain store

Robustness features:
- Malformed or inconsistent records are skipped, never fatal
- Record names are checked against the recomputed block hash
"""

# Lazy imports to avoid RuntimeWarning when running module directly
def __getattr__(name):
    """Lazy import to avoid circular import issues when running module directly."""
    from . import block_store
    return getattr(block_store, name)

__all__ = [
    'BlockStore',
    'encode_block',
    'decode_block',
    'key_for',
    'MAGIC_BYTES',
    'VERSION',
    'KEY_PATTERN',
]
