"""
Ledger Exceptions

Errors are part of the interface. Record-level failures (DecodeError,
ValidationError during replay) are absorbed by their callers; system-level
failures (StorageError at startup, MiningExhausted, ConfigError) propagate.
"""


class LedgerError(Exception):
    """Base exception for powledger."""


class ConfigError(LedgerError):
    """Configuration is missing, invalid, or inconsistent."""


class StorageError(LedgerError):
    """Block storage could not be read or written."""


class DecodeError(LedgerError):
    """A persisted block record is malformed."""


class ValidationError(LedgerError):
    """A block fails its proof-of-work target or chain linkage."""


class MiningExhausted(LedgerError):
    """The nonce space was searched without meeting the target."""


class BlockNotFoundError(LedgerError, LookupError):
    """No block at the requested index."""


class BlockRangeError(LedgerError, IndexError):
    """Requested block range extends past the chain tip."""


class ApiError(LedgerError):
    """Error reported to a caller of the public API."""


class InputError(ApiError):
    """Caller supplied malformed input (bad hex, wrong length, bad amount)."""
