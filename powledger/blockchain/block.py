"""
Block Structure and Canonical Encoding

Defines the ledger's data model and the byte layout every block hash is
computed from:

- Payloads: a closed union of BinaryData (tag 0) and Transaction (tag 1)
- Block: immutable header fields plus an ordered, non-empty payload tuple
- Canonical encoding: fixed-order little-endian header followed by every
  payload's tagged encoding
- Hashing: SHA-256 over the canonical encoding; all payloads contribute

Header layout (56 bytes):
    - id (8): u64, little-endian
    - nonce (8): u64, little-endian
    - timestamp (8): i64 reinterpreted as u64, little-endian
    - prev_hash (32): verbatim

A block's own hash is never stored. It is recomputed from the fields,
so any change to a decoded block changes its identity.
"""

import struct
import time
from dataclasses import dataclass, replace
from typing import ClassVar, Optional, Tuple, Union

from ..core_crypto.sha256 import DIGEST_SIZE, sha256_parts


# ============================================================================
# Constants
# ============================================================================

HASH_SIZE = DIGEST_SIZE
ZERO_HASH = b'\x00' * HASH_SIZE   # prev_hash of the genesis block
GENESIS_MARKER = b"Genesis block"

U64_MAX = 2 ** 64 - 1
I64_MIN = -(2 ** 63)
I64_MAX = 2 ** 63 - 1

TAG_BINARY_DATA = 0
TAG_TRANSACTION = 1

_U64 = struct.Struct('<Q')
_I64 = struct.Struct('<q')


def _check_u64(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an integer")
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"{name} out of u64 range: {value}")


def _check_hash(name: str, value: bytes) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_SIZE:
        raise ValueError(f"{name} must be {HASH_SIZE} bytes")


# ============================================================================
# Payloads
# ============================================================================

@dataclass(frozen=True)
class BinaryData:
    """Opaque payload."""
    TAG: ClassVar[int] = TAG_BINARY_DATA

    data: bytes

    def __post_init__(self):
        if not isinstance(self.data, (bytes, bytearray)):
            raise ValueError("BinaryData.data must be bytes")
        object.__setattr__(self, 'data', bytes(self.data))


@dataclass(frozen=True)
class Transaction:
    """Structured transfer record between two 32-byte addresses."""
    TAG: ClassVar[int] = TAG_TRANSACTION

    sender: bytes
    recipient: bytes
    amount: int

    def __post_init__(self):
        _check_hash("sender", self.sender)
        _check_hash("recipient", self.recipient)
        _check_u64("amount", self.amount)
        object.__setattr__(self, 'sender', bytes(self.sender))
        object.__setattr__(self, 'recipient', bytes(self.recipient))


Payload = Union[BinaryData, Transaction]


def encode_payload(payload: Payload) -> bytes:
    """
    Encode a payload as its discriminant byte followed by its fields.

    BinaryData:  0x00 || data
    Transaction: 0x01 || sender (32) || recipient (32) || amount (8, LE)
    """
    if isinstance(payload, BinaryData):
        return bytes([TAG_BINARY_DATA]) + payload.data
    if isinstance(payload, Transaction):
        return (
            bytes([TAG_TRANSACTION]) +
            payload.sender +
            payload.recipient +
            _U64.pack(payload.amount)
        )
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")


# ============================================================================
# Block Structure (Immutable)
# ============================================================================

@dataclass(frozen=True)
class Block:
    """
    Immutable ledger block.

    A block starts life as a skeleton with nonce=0; the miner's result is
    applied with ``with_nonce`` which returns a new instance.
    """
    id: int
    timestamp: int
    nonce: int
    prev_hash: bytes
    payloads: Tuple[Payload, ...]

    def __post_init__(self):
        _check_u64("id", self.id)
        _check_u64("nonce", self.nonce)
        if not isinstance(self.timestamp, int) or not I64_MIN <= self.timestamp <= I64_MAX:
            raise ValueError(f"timestamp out of i64 range: {self.timestamp}")
        _check_hash("prev_hash", self.prev_hash)
        payloads = tuple(self.payloads)
        if not payloads:
            raise ValueError("Block must carry at least one payload")
        for payload in payloads:
            if not isinstance(payload, (BinaryData, Transaction)):
                raise ValueError(f"Unsupported payload type: {type(payload).__name__}")
        object.__setattr__(self, 'prev_hash', bytes(self.prev_hash))
        object.__setattr__(self, 'payloads', payloads)

    @classmethod
    def skeleton(
        cls,
        id: int,
        prev_hash: bytes,
        payloads,
        timestamp: Optional[int] = None
    ) -> 'Block':
        """Build an unmined block (nonce=0) stamped with the current time."""
        if timestamp is None:
            timestamp = int(time.time())
        return cls(
            id=id,
            timestamp=timestamp,
            nonce=0,
            prev_hash=prev_hash,
            payloads=tuple(payloads),
        )

    def with_nonce(self, nonce: int) -> 'Block':
        """Return the mined instance of this block."""
        return replace(self, nonce=nonce)

    @property
    def primary_payload(self) -> Payload:
        """First payload; the only one exposed by read views."""
        return self.payloads[0]

    def hash(self) -> bytes:
        """Recompute this block's SHA-256 digest."""
        return hash_block(self)

    def hash_hex(self) -> str:
        return self.hash().hex()

    def __str__(self) -> str:
        return (
            f"Block #{self.id}\n"
            f"  Hash: {self.hash_hex()[:16]}...\n"
            f"  Prev: {self.prev_hash.hex()[:16]}...\n"
            f"  Nonce: {self.nonce}\n"
            f"  Payloads: {len(self.payloads)}"
        )


# ============================================================================
# Canonical Encoding & Hashing
# ============================================================================

def encode_header(block: Block, nonce: Optional[int] = None) -> bytes:
    """
    Encode the fixed-size block header.

    Args:
        block: Block whose header is encoded
        nonce: Override for the block's own nonce (used while mining)

    Returns:
        56 bytes: id || nonce || timestamp || prev_hash
    """
    if nonce is None:
        nonce = block.nonce
    return (
        _U64.pack(block.id) +
        _U64.pack(nonce) +
        _I64.pack(block.timestamp) +
        block.prev_hash
    )


def encode_body(block: Block) -> bytes:
    """Concatenated encoding of every payload, in order."""
    return b''.join(encode_payload(p) for p in block.payloads)


def hash_with_nonce(block: Block, nonce: int) -> bytes:
    """Hash of ``block`` as if its nonce were ``nonce``."""
    return sha256_parts([encode_header(block, nonce), encode_body(block)])


def hash_block(block: Block) -> bytes:
    """SHA-256 of the canonical header followed by every payload."""
    return hash_with_nonce(block, block.nonce)


def hash_to_int(block_hash: bytes) -> int:
    """Interpret a digest as an unsigned big-endian 256-bit integer."""
    return int.from_bytes(block_hash, 'big')


def target_for(difficulty: int) -> int:
    """
    Target for a difficulty level: 2^(256 - difficulty).

    A valid hash must be strictly less than this value.
    """
    if not 1 <= difficulty <= 256:
        raise ValueError("Difficulty must be between 1 and 256")
    return 2 ** (256 - difficulty)


def meets_target(block_hash: bytes, difficulty: int) -> bool:
    """Check if a hash meets the difficulty target."""
    return hash_to_int(block_hash) < target_for(difficulty)


def genesis_skeleton(timestamp: Optional[int] = None) -> Block:
    """Unmined genesis block: id 0, zero prev_hash, the fixed marker payload."""
    return Block.skeleton(0, ZERO_HASH, [BinaryData(GENESIS_MARKER)], timestamp)


def marker_payload(block_id: int) -> BinaryData:
    """Auto-generated payload carried by every non-genesis mined block."""
    return BinaryData(f"Block {block_id}".encode())
