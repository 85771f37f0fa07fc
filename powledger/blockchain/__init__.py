# Blockchain Module
"""
Blockchain ledger implementation including:
- Canonical block encoding and SHA-256 chaining
- Parallel Proof of Work mining
- Adjustable difficulty target
- Shared chain store with reader/writer locking

Security features:
- Immutable blocks (frozen dataclass)
- Block hash always recomputed, never stored
- Full chain validation
"""

# Lazy imports to avoid RuntimeWarning when running module directly
def __getattr__(name):
    """Lazy import to avoid circular import issues."""
    from . import block, ledger, miner
    for module in (ledger, block, miner):
        if hasattr(module, name):
            return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    'Block',
    'BinaryData',
    'Transaction',
    'Blockchain',
    'Miner',
    'FoundNonce',
    'create_blockchain',
    'encode_header',
    'encode_payload',
    'hash_block',
    'hash_with_nonce',
    'meets_target',
    'target_for',
    'ZERO_HASH',
    'GENESIS_MARKER',
    'DEFAULT_DIFFICULTY',
]
