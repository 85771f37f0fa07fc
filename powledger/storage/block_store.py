"""
Block Storage Module

Durable, one-file-per-block persistence:
- Binary record format reusing the canonical header layout
- Content-addressed file names: block<hex(hash)>
- Atomic writes (temp file + rename), idempotent overwrites
- Replay: scan, decode, validate and rebuild the chain store at startup

Record Format:
    [magic | version | header | count | payloads...]

Header (little-endian, same order as the hash input):
    - id (8): u64
    - nonce (8): u64
    - timestamp (8): i64
    - prev_hash (32)

Payload entry:
    - discriminant (1): 0 = BinaryData, 1 = Transaction
    - body length (4): u32
    - body: data bytes | sender (32) + recipient (32) + amount (8)

Replay tolerates bad records: an unreadable, malformed or inconsistent
file is skipped with a warning. Only failure to list the storage
directory itself is fatal.
"""

import logging
import os
import re
import struct
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..blockchain.block import (
    HASH_SIZE,
    TAG_BINARY_DATA,
    TAG_TRANSACTION,
    BinaryData,
    Block,
    Payload,
    Transaction,
)
from ..blockchain.ledger import Blockchain
from ..exceptions import DecodeError, StorageError


logger = logging.getLogger(__name__)


# Constants
MAGIC_BYTES = b"PWLB"       # powledger block
VERSION = 0x01
KEY_PREFIX = "block"
KEY_PATTERN = re.compile(r"^block[0-9a-fA-F]+$")

_HEADER = struct.Struct('<4sBQQq32sI')   # magic, version, id, nonce, timestamp, prev_hash, count
_ENTRY = struct.Struct('<BI')            # discriminant, body length
_AMOUNT = struct.Struct('<Q')

TRANSACTION_BODY_SIZE = HASH_SIZE * 2 + _AMOUNT.size   # 72 bytes


# ============================================================================
# Record Encoding
# ============================================================================

def _encode_body(payload: Payload) -> bytes:
    if isinstance(payload, BinaryData):
        return payload.data
    if isinstance(payload, Transaction):
        return payload.sender + payload.recipient + _AMOUNT.pack(payload.amount)
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")


def encode_block(block: Block) -> bytes:
    """
    Serialize a block to its persisted record.

    Args:
        block: Block to serialize

    Returns:
        Record bytes; ``decode_block`` is the exact inverse
    """
    parts = [_HEADER.pack(
        MAGIC_BYTES,
        VERSION,
        block.id,
        block.nonce,
        block.timestamp,
        block.prev_hash,
        len(block.payloads),
    )]
    for payload in block.payloads:
        body = _encode_body(payload)
        parts.append(_ENTRY.pack(payload.TAG, len(body)))
        parts.append(body)
    return b''.join(parts)


def _decode_payload(tag: int, body: bytes) -> Payload:
    if tag == TAG_BINARY_DATA:
        return BinaryData(body)
    if tag == TAG_TRANSACTION:
        if len(body) != TRANSACTION_BODY_SIZE:
            raise DecodeError(
                f"Transaction body must be {TRANSACTION_BODY_SIZE} bytes, got {len(body)}"
            )
        return Transaction(
            sender=body[:HASH_SIZE],
            recipient=body[HASH_SIZE:HASH_SIZE * 2],
            amount=_AMOUNT.unpack(body[HASH_SIZE * 2:])[0],
        )
    raise DecodeError(f"Unknown payload discriminant: {tag}")


def decode_block(data: bytes) -> Block:
    """
    Deserialize a persisted record.

    Args:
        data: Record bytes

    Returns:
        The decoded block

    Raises:
        DecodeError: If the record is malformed
    """
    if len(data) < _HEADER.size:
        raise DecodeError(f"Record too short: {len(data)} bytes")

    magic, version, block_id, nonce, timestamp, prev_hash, count = _HEADER.unpack_from(data, 0)
    if magic != MAGIC_BYTES:
        raise DecodeError("Invalid record magic")
    if version != VERSION:
        raise DecodeError(f"Unsupported record version: {version}")
    if count == 0:
        raise DecodeError("Record carries no payloads")

    offset = _HEADER.size
    payloads = []
    for _ in range(count):
        if offset + _ENTRY.size > len(data):
            raise DecodeError("Truncated payload entry")
        tag, length = _ENTRY.unpack_from(data, offset)
        offset += _ENTRY.size

        if offset + length > len(data):
            raise DecodeError("Truncated payload body")
        payloads.append(_decode_payload(tag, data[offset:offset + length]))
        offset += length

    if offset != len(data):
        raise DecodeError(f"{len(data) - offset} trailing bytes after last payload")

    try:
        return Block(
            id=block_id,
            timestamp=timestamp,
            nonce=nonce,
            prev_hash=prev_hash,
            payloads=tuple(payloads),
        )
    except ValueError as e:
        raise DecodeError(f"Invalid block fields: {e}") from e


def key_for(block: Block) -> str:
    """Storage key committing to the block's content."""
    return KEY_PREFIX + block.hash_hex()


# ============================================================================
# Block Store
# ============================================================================

class BlockStore:
    """
    Directory of block records, one file per block.

    Example:
        >>> store = BlockStore("./blocks")
        >>> store.write(block)
        >>> chain = store.replay(Blockchain(Miner(), difficulty=10))
    """

    def __init__(self, path: Union[str, Path]):
        """
        Args:
            path: Storage directory (created on first scan or write)
        """
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_dir(self) -> None:
        try:
            self._path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self._path}: {e}") from e

    def write(self, block: Block) -> Path:
        """
        Persist a block under its content-addressed key.

        Rewriting an unchanged block replaces the file with identical bytes.

        Raises:
            StorageError: If the record cannot be written
        """
        self._ensure_dir()
        target = self._path / key_for(block)
        data = encode_block(block)

        try:
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=self._path)
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write block #{block.id} to {target}: {e}") from e

        return target

    def write_all(self, blocks: Iterable[Block]) -> int:
        """Write blocks in order. Returns the number written."""
        count = 0
        for block in blocks:
            self.write(block)
            count += 1
        return count

    def read(self, key: str) -> Block:
        """
        Read and decode one record.

        Raises:
            StorageError: If the file cannot be read
            DecodeError: If the record is malformed
        """
        path = self._path / key
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e
        return decode_block(data)

    def scan(self) -> List[str]:
        """
        List stored block keys (file names matching ``block<hex>``).

        Raises:
            StorageError: If the directory cannot be listed
        """
        self._ensure_dir()
        try:
            entries = list(os.scandir(self._path))
        except OSError as e:
            raise StorageError(f"Cannot read storage directory {self._path}: {e}") from e

        keys = []
        for entry in entries:
            if KEY_PATTERN.match(entry.name) and entry.is_file():
                keys.append(entry.name)
        return sorted(keys)

    def load(self, key: str) -> Optional[Block]:
        """
        Read one record for replay, returning None if it must be skipped.

        The file name must equal ``block<hex(hash)>`` of the decoded block.
        """
        try:
            block = self.read(key)
        except (StorageError, DecodeError) as e:
            logger.warning("Skipping block record %s: %s", key, e)
            return None
        if key_for(block).lower() != key.lower():
            logger.warning("Skipping block record %s: content hash does not match file name", key)
            return None
        return block

    def replay(self, chain: Blockchain) -> Blockchain:
        """
        Rebuild ``chain`` from storage.

        Decodes every stored record, installs the survivors through
        ``load_validated`` and mines a new genesis block if none survive.

        Raises:
            StorageError: If the storage directory cannot be read
        """
        keys = self.scan()
        logger.info("Replaying %d block records from %s", len(keys), self._path)

        blocks = []
        for key in keys:
            block = self.load(key)
            if block is not None:
                blocks.append(block)

        if chain.load_validated(blocks) == 0:
            logger.info("No valid blocks in storage")
            chain.init_genesis()

        return chain
