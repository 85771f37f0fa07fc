"""
Ledger API Facade

Read and write entry points used by clients of a running node.

Views are plain dictionaries:
- Block: id, timestamp, nonce, hash, prev_block_hash, data
- BinaryData: {"type": "BinaryData", "data": <lowercase hex>}
- Transaction: {"type": "Transaction", "sender": <HEX>, "recipient": <HEX>,
  "amount": <int>}

Only the primary payload of a block is exposed by the block view; every
payload still contributes to the block hash.
"""

import binascii
import logging
from typing import Any, Dict, List

from ..blockchain.block import HASH_SIZE, U64_MAX, Block, Payload, Transaction
from ..blockchain.ledger import Blockchain
from ..exceptions import ApiError, BlockNotFoundError, BlockRangeError, InputError


logger = logging.getLogger(__name__)


BLOCK_NOT_FOUND = "Block does not exist"


# ============================================================================
# Views
# ============================================================================

def payload_view(payload: Payload) -> Dict[str, Any]:
    """Render a payload for API callers."""
    if isinstance(payload, Transaction):
        return {
            'type': 'Transaction',
            'sender': payload.sender.hex().upper(),
            'recipient': payload.recipient.hex().upper(),
            'amount': payload.amount,
        }
    return {
        'type': 'BinaryData',
        'data': payload.data.hex(),
    }


def block_view(block: Block) -> Dict[str, Any]:
    """Render the primary view of a block."""
    return {
        'id': block.id,
        'timestamp': block.timestamp,
        'nonce': block.nonce,
        'hash': block.hash_hex().upper(),
        'prev_block_hash': block.prev_hash.hex().upper(),
        'data': payload_view(block.primary_payload),
    }


# ============================================================================
# Input Validation
# ============================================================================

def parse_address(value: str, role: str) -> bytes:
    """
    Decode a hex address.

    Args:
        value: Hex string supplied by the caller
        role: "from" or "to", used in error messages

    Returns:
        The 32 raw address bytes

    Raises:
        InputError: If the value is not hex or not 32 bytes long
    """
    try:
        raw = binascii.unhexlify(value)
    except (ValueError, TypeError):
        raise InputError(f"Invalid hex {role} address")
    if len(raw) != HASH_SIZE:
        raise InputError(f"Invalid length {role} address")
    return raw


def parse_amount(value: Any) -> int:
    """Check an amount fits an unsigned 64-bit integer."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputError("Invalid amount")
    if not 0 <= value <= U64_MAX:
        raise InputError("Invalid amount")
    return value


# ============================================================================
# Facade
# ============================================================================

class LedgerAPI:
    """
    Query and mutation facade over a shared chain store.

    Example:
        >>> api = LedgerAPI(chain)
        >>> api.block(0)['prev_block_hash']
        '0000000000000000000000000000000000000000000000000000000000000000'
        >>> api.publish_transaction('AB' * 32, 'CD' * 32, 10)['amount']
        10
    """

    def __init__(self, chain: Blockchain):
        self._chain = chain

    def block(self, index: int) -> Dict[str, Any]:
        """
        Get the block at a chain position.

        Raises:
            ApiError: If no block exists at ``index``
        """
        try:
            block = self._chain.get_block(index)
        except BlockNotFoundError:
            raise ApiError(BLOCK_NOT_FOUND)
        return block_view(block)

    def blocks(self, start: int, length: int) -> List[Dict[str, Any]]:
        """
        Get ``length`` consecutive blocks starting at ``start``.

        Raises:
            ApiError: If the range extends past the chain tip
        """
        try:
            blocks = self._chain.get_blocks(start, length)
        except BlockRangeError:
            raise ApiError(BLOCK_NOT_FOUND)
        return [block_view(block) for block in blocks]

    def publish_transaction(self, sender: str, recipient: str, amount: int) -> Dict[str, Any]:
        """
        Validate and queue a transfer.

        Args:
            sender: Hex-encoded 32-byte source address
            recipient: Hex-encoded 32-byte destination address
            amount: Unsigned 64-bit amount

        Returns:
            View of the queued transaction

        Raises:
            InputError: If any argument is malformed
        """
        transaction = Transaction(
            sender=parse_address(sender, 'from'),
            recipient=parse_address(recipient, 'to'),
            amount=parse_amount(amount),
        )
        queued = self._chain.submit_payload(transaction)
        logger.info("Queued transaction (%d pending)", queued)
        return payload_view(transaction)

    def pending(self) -> List[Dict[str, Any]]:
        return [payload_view(payload) for payload in self._chain.pending_payloads]

    def chain_length(self) -> int:
        return self._chain.length
