"""
Proof of Work Miner

Parallel nonce search for a block skeleton:

- Target = 2^(256 - difficulty); a hash is valid when, read as a
  big-endian integer, it is strictly below the target
- One worker thread per processing unit, each scanning a disjoint stride
  of the nonce space (worker k tries k, k+W, k+2W, ...)
- A write-once FoundNonce cell publishes the first winner; every worker
  checks it once per attempt and stops when it is set
- mine() blocks until a winner is published or every stride is exhausted

Which valid nonce wins depends on thread scheduling. Only validity is a
contract, not minimality.
"""

import logging
import os
import struct
import threading
import time
from typing import List, Optional

from ..core_crypto.sha256 import new_state
from .block import Block, encode_body, hash_to_int, target_for


logger = logging.getLogger(__name__)

NONCE_SPACE = 2 ** 64  # Full u64 nonce range

_U64 = struct.Struct('<Q')
_I64 = struct.Struct('<q')


class FoundNonce:
    """
    Write-once result cell shared by mining workers.

    The first ``publish`` wins; later calls are ignored. Readers poll
    ``is_set`` without taking the lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._nonce: Optional[int] = None

    def publish(self, nonce: int) -> bool:
        """Record ``nonce`` if no winner exists yet. Returns True if it won."""
        with self._lock:
            if self._event.is_set():
                return False
            self._nonce = nonce
            self._event.set()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def nonce(self) -> Optional[int]:
        return self._nonce


class Miner:
    """
    Multi-threaded proof-of-work search.

    Example:
        >>> miner = Miner(workers=2)
        >>> nonce = miner.mine(genesis_skeleton(), difficulty=8)
        >>> meets_target(hash_with_nonce(genesis_skeleton(), nonce), 8)
        True
    """

    def __init__(self, workers: Optional[int] = None):
        """
        Args:
            workers: Number of search threads (default: CPU count)
        """
        if workers is None:
            workers = os.cpu_count() or 1
        if workers < 1:
            raise ValueError("Miner needs at least one worker")
        self.workers = workers

    def mine(
        self,
        skeleton: Block,
        difficulty: int,
        max_nonce: int = NONCE_SPACE
    ) -> Optional[int]:
        """
        Search for a nonce that puts the skeleton's hash below the target.

        Args:
            skeleton: Block to mine; its own nonce is ignored
            difficulty: Required strength in bits (1-256)
            max_nonce: Exclusive upper bound of the search space

        Returns:
            A winning nonce, or None if the space was exhausted
        """
        target = target_for(difficulty)
        found = FoundNonce()

        # id is the only header field before the nonce; everything after
        # it is fixed for the whole search
        prefix_state = new_state()
        prefix_state.update(_U64.pack(skeleton.id))
        suffix = _I64.pack(skeleton.timestamp) + skeleton.prev_hash + encode_body(skeleton)

        logger.info(
            "Started mining block #%d with difficulty %d (%d workers)",
            skeleton.id, difficulty, self.workers
        )
        started = time.monotonic()

        threads: List[threading.Thread] = []
        for worker in range(self.workers):
            thread = threading.Thread(
                target=_search,
                args=(prefix_state.copy(), suffix, target, worker, self.workers, max_nonce, found),
                name=f"miner-{skeleton.id}-{worker}",
                daemon=True,
            )
            threads.append(thread)
            thread.start()

        for thread in threads:
            thread.join()

        if not found.is_set():
            logger.warning("Giving up mining block #%d", skeleton.id)
            return None

        logger.info(
            "Found nonce for block #%d: %d (%.3fs)",
            skeleton.id, found.nonce, time.monotonic() - started
        )
        return found.nonce


def _search(
    prefix_state,
    suffix: bytes,
    target: int,
    start: int,
    step: int,
    max_nonce: int,
    found: FoundNonce
) -> None:
    """Worker loop: scan start, start+step, ... until a winner exists."""
    for nonce in range(start, max_nonce, step):
        if found.is_set():
            return
        state = prefix_state.copy()
        state.update(_U64.pack(nonce))
        state.update(suffix)
        if hash_to_int(state.finalize()) < target:
            found.publish(nonce)
            return
