"""
Ledger Node Module

Wires one process worth of components from a single LedgerConfig:

    Miner -> Blockchain <- BlockStore (replay at start, flush while running)
                 ^
                 +------ FlushScheduler
                 +------ LedgerAPI

Startup order: replay storage into the chain store, optionally mine one
block on top of the replayed tip, then start background flushing.
Stopping runs the shutdown handshake and reports whether the final flush
persisted the chain.
"""

import logging
from typing import Optional

from ..api.facade import LedgerAPI
from ..blockchain.block import Block
from ..blockchain.ledger import Blockchain
from ..blockchain.miner import Miner
from ..config import LedgerConfig
from ..storage.block_store import BlockStore
from .flush_scheduler import FlushScheduler


logger = logging.getLogger(__name__)


class LedgerNode:
    """
    A running ledger: chain store, storage, background flushing and API.

    Example:
        >>> node = LedgerNode(LedgerConfig(difficulty=8, storage_path="./blocks"))
        >>> node.start()
        >>> node.api.block(0)['id']
        0
        >>> node.stop()
        True
    """

    def __init__(self, config: Optional[LedgerConfig] = None):
        self.config = config or LedgerConfig()
        self.miner = Miner(self.config.workers)
        self.chain = Blockchain(
            self.miner,
            difficulty=self.config.difficulty,
            drain_pending=self.config.drain_pending,
            strict_links=self.config.strict_links,
        )
        self.store = BlockStore(self.config.storage_path)
        self.scheduler = FlushScheduler(
            self.chain,
            self.store,
            interval=self.config.flush_interval,
            retries=self.config.flush_retries,
            backoff=self.config.flush_backoff,
        )
        self.api = LedgerAPI(self.chain)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self, extend: bool = True) -> Optional[Block]:
        """
        Replay storage and begin background flushing.

        Args:
            extend: Mine one new block on top of the replayed tip

        Returns:
            The newly mined block, or None when ``extend`` is False

        Raises:
            StorageError: If the storage directory cannot be read
            MiningExhausted: If a required block cannot be mined
        """
        if self._started:
            raise RuntimeError("Node already started")

        logger.info("Starting ledger node (difficulty %d, storage %s)",
                    self.config.difficulty, self.store.path)
        self.store.replay(self.chain)

        mined = self.chain.append_next() if extend else None

        self.scheduler.start()
        self._started = True
        logger.info("Ledger node running with %d blocks", self.chain.length)
        return mined

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Flush the chain one last time and stop background work.

        Returns:
            True if the final flush completed within ``timeout`` and
            persisted every block
        """
        logger.info("Stopping ledger node")
        persisted = self.scheduler.shutdown(timeout)
        if persisted:
            logger.info("Final flush complete, %d blocks persisted", self.chain.length)
        elif self.scheduler.exited:
            logger.error("Final flush failed: %s", self.scheduler.last_error)
        else:
            logger.error("Timed out waiting for the final flush")
        self._started = False
        return persisted
