"""
Blockchain Ledger Module

In-memory chain store:
- Ordered list of mined blocks plus a hash -> index map
- Predecessor links resolved through the hash map
- Pending payload queue fed by the public API
- Tip extension through the parallel Miner

Concurrency:
- One reader/writer lock guards all chain state
- Mining runs with no lock held; only installing the mined block takes
  the write lock. If the tip moved meanwhile, the block is rebuilt and
  mined again on top of the new tip.

Pending payloads are queued but, by default, never placed into a block:
every mined block carries a single auto-generated marker payload. With
drain_pending=True the queue is appended after the marker instead.
"""

import logging
from itertools import groupby
from typing import Dict, Iterable, List, Optional, Tuple

from ..exceptions import (
    BlockNotFoundError,
    BlockRangeError,
    MiningExhausted,
    ValidationError,
)
from .block import (
    ZERO_HASH,
    BinaryData,
    Block,
    Payload,
    Transaction,
    genesis_skeleton,
    marker_payload,
    meets_target,
    target_for,
)
from .miner import Miner
from .rwlock import ReadWriteLock


logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

DEFAULT_DIFFICULTY = 10  # Leading zero bits required


def _is_genesis(block: Block) -> bool:
    return block.prev_hash == ZERO_HASH


# ============================================================================
# Blockchain
# ============================================================================

class Blockchain:
    """
    Shared chain state handed to the API, the flush scheduler and storage.

    Example:
        >>> chain = Blockchain(Miner(workers=2), difficulty=8)
        >>> genesis = chain.init_genesis()
        >>> chain.append_next().id
        1
    """

    def __init__(
        self,
        miner: Miner,
        difficulty: int = DEFAULT_DIFFICULTY,
        drain_pending: bool = False,
        strict_links: bool = False
    ):
        """
        Initialize an empty chain store.

        Args:
            miner: Miner used to extend the chain
            difficulty: PoW difficulty for new blocks and replay validation
            drain_pending: Place queued payloads into the next mined block
            strict_links: Drop replayed blocks whose predecessor is missing
        """
        target_for(difficulty)  # validates range
        self._miner = miner
        self._difficulty = difficulty
        self._drain_pending = drain_pending
        self._strict_links = strict_links

        self._blocks: List[Block] = []
        self._hash_index: Dict[bytes, int] = {}
        self._prev_index: Dict[int, int] = {}
        self._pending: List[Payload] = []
        self._lock = ReadWriteLock()

    # ========================================================================
    # Read access
    # ========================================================================

    @property
    def difficulty(self) -> int:
        return self._difficulty

    @property
    def length(self) -> int:
        with self._lock.read():
            return len(self._blocks)

    @property
    def tip(self) -> Optional[Block]:
        """Most recently appended block, or None for an empty chain."""
        with self._lock.read():
            return self._blocks[-1] if self._blocks else None

    @property
    def pending_payloads(self) -> List[Payload]:
        with self._lock.read():
            return list(self._pending)

    def snapshot(self) -> List[Block]:
        """Copy of the whole chain, taken under the read lock."""
        with self._lock.read():
            return list(self._blocks)

    def get_block(self, index: int) -> Block:
        """
        Get the block at a chain position.

        Raises:
            BlockNotFoundError: If no block exists at ``index``
        """
        with self._lock.read():
            if index < 0 or index >= len(self._blocks):
                raise BlockNotFoundError(f"Block {index} does not exist")
            return self._blocks[index]

    def get_blocks(self, start: int, length: int) -> List[Block]:
        """
        Get ``length`` consecutive blocks starting at ``start``.

        Raises:
            BlockRangeError: If the range extends past the tip
        """
        with self._lock.read():
            if start < 0 or length < 0 or start + length > len(self._blocks):
                raise BlockRangeError(
                    f"Range {start}+{length} exceeds chain length {len(self._blocks)}"
                )
            return self._blocks[start:start + length]

    def index_of(self, block_hash: bytes) -> Optional[int]:
        """Chain position of the block with this hash."""
        with self._lock.read():
            return self._hash_index.get(block_hash)

    def predecessor_index(self, index: int) -> Optional[int]:
        """Chain position of a block's predecessor, None if unresolved."""
        with self._lock.read():
            return self._prev_index.get(index)

    # ========================================================================
    # Mutation
    # ========================================================================

    def submit_payload(self, payload: Payload) -> int:
        """
        Queue a payload for the pending pool.

        Returns:
            Number of pending payloads
        """
        if not isinstance(payload, (BinaryData, Transaction)):
            raise TypeError(f"Unsupported payload type: {type(payload).__name__}")
        with self._lock.write():
            self._pending.append(payload)
            return len(self._pending)

    def init_genesis(self, difficulty: Optional[int] = None) -> Block:
        """
        Mine the genesis block and install it as block 0.

        Any existing content is replaced.

        Raises:
            MiningExhausted: If no valid nonce exists
            ValueError: If ``difficulty`` is below the chain difficulty
        """
        difficulty = self._resolve_difficulty(difficulty)
        logger.info("Initialising genesis block")
        genesis = self._mine(genesis_skeleton(), difficulty)
        with self._lock.write():
            self._blocks = [genesis]
            self._hash_index = {genesis.hash(): 0}
            self._prev_index = {}
        logger.info("New chain initialised (genesis %s)", genesis.hash_hex()[:16])
        return genesis

    def append_next(self, difficulty: Optional[int] = None) -> Optional[Block]:
        """
        Mine a block on top of the current tip and append it.

        Returns:
            The new block, or None if the chain has no genesis yet

        Raises:
            MiningExhausted: If no valid nonce exists
            ValidationError: If the mined block fails its own target
            ValueError: If ``difficulty`` is below the chain difficulty
        """
        difficulty = self._resolve_difficulty(difficulty)

        while True:
            with self._lock.read():
                if not self._blocks:
                    logger.warning("No parent: cannot extend an empty chain")
                    return None
                tip = self._blocks[-1]
                pending = list(self._pending) if self._drain_pending else []

            next_id = tip.id + 1
            skeleton = Block.skeleton(next_id, tip.hash(), [marker_payload(next_id)] + pending)
            block = self._mine(skeleton, difficulty)
            block_hash = block.hash()

            with self._lock.write():
                if not self._blocks or self._blocks[-1] is not tip:
                    logger.info("Tip moved while mining block #%d, retrying", next_id)
                    continue
                index = len(self._blocks)
                self._blocks.append(block)
                self._hash_index[block_hash] = index
                self._prev_index[index] = index - 1
                if pending:
                    del self._pending[:len(pending)]

            logger.info("Appended block #%d (%s)", block.id, block_hash.hex()[:16])
            return block

    def load_validated(self, blocks: Iterable[Block]) -> int:
        """
        Install externally decoded blocks, replacing the current content.

        Blocks are ordered by (id, hash). Blocks that fail the difficulty
        target are dropped with a warning and repeated hashes are ignored.
        At most one block is kept per id: the first one linking to an
        already accepted block, otherwise (unless strict_links) the first
        one. Competing blocks with the same id are dropped as forks.
        Predecessor links are then resolved through the rebuilt hash map;
        unresolved links stay absent.

        Returns:
            Number of blocks installed
        """
        candidates: List[Tuple[Block, bytes]] = sorted(
            ((block, block.hash()) for block in blocks),
            key=lambda pair: (pair[0].id, pair[1])
        )

        accepted: List[Tuple[Block, bytes]] = []
        seen: Dict[bytes, int] = {}
        rejected = 0
        for block_id, group in groupby(candidates, key=lambda pair: pair[0].id):
            contenders: List[Tuple[Block, bytes]] = []
            for block, block_hash in group:
                if not meets_target(block_hash, self._difficulty):
                    logger.warning(
                        "Encountered invalid block #%d (%s): hash above target",
                        block.id, block_hash.hex()[:16]
                    )
                    rejected += 1
                    continue
                if contenders and contenders[-1][1] == block_hash:
                    logger.debug("Skipping duplicate block %s", block_hash.hex()[:16])
                    continue
                contenders.append((block, block_hash))
            if not contenders:
                continue

            linked = [
                pair for pair in contenders
                if _is_genesis(pair[0]) or pair[0].prev_hash in seen
            ]
            if linked:
                chosen = linked[0]
            elif self._strict_links:
                for block, block_hash in contenders:
                    logger.warning(
                        "Dropping block #%d (%s): predecessor not found",
                        block.id, block_hash.hex()[:16]
                    )
                rejected += len(contenders)
                continue
            else:
                chosen = contenders[0]

            for block, block_hash in contenders:
                if block_hash != chosen[1]:
                    logger.warning(
                        "Dropping fork block #%d (%s): block #%d already chosen (%s)",
                        block.id, block_hash.hex()[:16], block_id, chosen[1].hex()[:16]
                    )
                    rejected += 1
            seen[chosen[1]] = len(accepted)
            accepted.append(chosen)

        links: Dict[int, int] = {}
        for index, (block, block_hash) in enumerate(accepted):
            if _is_genesis(block):
                continue
            prev = seen.get(block.prev_hash)
            if prev is None:
                logger.warning(
                    "Block #%d (%s) has no known predecessor",
                    block.id, block_hash.hex()[:16]
                )
            else:
                links[index] = prev

        with self._lock.write():
            self._blocks = [block for block, _ in accepted]
            self._hash_index = seen
            self._prev_index = links

        logger.info("Loaded %d blocks (%d rejected)", len(accepted), rejected)
        return len(accepted)

    def _resolve_difficulty(self, difficulty: Optional[int]) -> int:
        """Difficulty for a new block: the override, never below the chain difficulty."""
        if difficulty is None:
            return self._difficulty
        target_for(difficulty)
        if difficulty < self._difficulty:
            raise ValueError(
                f"Difficulty {difficulty} is below the chain difficulty {self._difficulty}"
            )
        return difficulty

    def _mine(self, skeleton: Block, difficulty: int) -> Block:
        """Mine a skeleton and check the result against its target."""
        nonce = self._miner.mine(skeleton, difficulty)
        if nonce is None:
            raise MiningExhausted(f"Failed to mine block #{skeleton.id}")
        block = skeleton.with_nonce(nonce)
        if not meets_target(block.hash(), difficulty):
            raise ValidationError(f"Mined block #{block.id} does not meet difficulty target")
        return block

    # ========================================================================
    # Validation
    # ========================================================================

    def validate_chain(self) -> bool:
        """
        Validate the entire chain.

        Returns:
            True if chain is valid

        Raises:
            ValidationError: On the first broken invariant
        """
        blocks = self.snapshot()
        if not blocks:
            raise ValidationError("Chain is empty")

        genesis = blocks[0]
        if genesis.id != 0 or genesis.prev_hash != ZERO_HASH:
            raise ValidationError("Invalid genesis block")

        prev_hash = None
        for i, block in enumerate(blocks):
            block_hash = block.hash()
            if not meets_target(block_hash, self._difficulty):
                raise ValidationError(f"Block #{block.id} does not meet difficulty target")
            if i > 0:
                if block.id != blocks[i - 1].id + 1:
                    raise ValidationError(
                        f"Invalid id: expected {blocks[i - 1].id + 1}, got {block.id}"
                    )
                if block.prev_hash != prev_hash:
                    raise ValidationError(f"Previous hash mismatch at block #{block.id}")
            prev_hash = block_hash

        return True


# ============================================================================
# Convenience Functions
# ============================================================================

def create_blockchain(
    difficulty: int = DEFAULT_DIFFICULTY,
    workers: Optional[int] = None
) -> Blockchain:
    """Create a chain store with a freshly mined genesis block."""
    chain = Blockchain(Miner(workers), difficulty)
    chain.init_genesis()
    return chain
