"""
Flush Scheduler Module

Periodically writes the whole in-memory chain to block storage.

Two background threads share a mailbox:
- Ticker: posts a FLUSH message every ``interval`` seconds; when shutdown
  is requested it posts one final FLUSH followed by STOP and exits
- Flusher: on each FLUSH takes a read-locked snapshot of the chain and
  writes every block in order; on STOP it marks the scheduler exited

The exited event is the shutdown acknowledgment: once it is set, the final
flush has completed and the process may terminate. Callers block on it
instead of spinning. ``shutdown`` also reports whether that flush succeeded.

A failed flush is retried with exponential backoff and then logged; the
service keeps running and the next tick tries again.
"""

import logging
import queue
import threading
import time
from typing import Optional

from ..blockchain.ledger import Blockchain
from ..exceptions import StorageError
from ..storage.block_store import BlockStore


logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

DEFAULT_FLUSH_INTERVAL = 5.0  # seconds
DEFAULT_FLUSH_RETRIES = 3
DEFAULT_FLUSH_BACKOFF = 0.5   # seconds, doubled per retry

FLUSH = "flush"
STOP = "stop"


# ============================================================================
# Flush Scheduler
# ============================================================================

class FlushScheduler:
    """
    Timer-driven background persistence with a cooperative shutdown.

    Example:
        >>> scheduler = FlushScheduler(chain, BlockStore("./blocks"), interval=5)
        >>> scheduler.start()
        >>> ...
        >>> scheduler.shutdown()   # returns after the final flush
        True
    """

    def __init__(
        self,
        chain: Blockchain,
        store: BlockStore,
        interval: float = DEFAULT_FLUSH_INTERVAL,
        retries: int = DEFAULT_FLUSH_RETRIES,
        backoff: float = DEFAULT_FLUSH_BACKOFF
    ):
        """
        Initialize the scheduler (threads start in ``start``).

        Args:
            chain: Chain store to snapshot
            store: Destination block storage
            interval: Seconds between periodic flushes
            retries: Extra attempts after a failed flush
            backoff: Base delay before the first retry
        """
        if interval <= 0:
            raise ValueError("Flush interval must be positive")
        self._chain = chain
        self._store = store
        self._interval = interval
        self._retries = retries
        self._backoff = backoff

        self._mailbox: "queue.Queue[str]" = queue.Queue()
        self._shutdown = threading.Event()
        self._exited = threading.Event()
        self._ticker: Optional[threading.Thread] = None
        self._flusher: Optional[threading.Thread] = None

        self.flush_count = 0
        self.failed_flushes = 0
        self.last_error: Optional[StorageError] = None
        self._final_ok = False

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> None:
        """Start the ticker and flusher threads."""
        if self._ticker is not None:
            raise RuntimeError("Flush scheduler already started")
        self._flusher = threading.Thread(target=self._flush_loop, name="flush-worker", daemon=True)
        self._ticker = threading.Thread(target=self._tick_loop, name="flush-ticker", daemon=True)
        self._flusher.start()
        self._ticker.start()
        logger.info("Flush scheduler started (every %.1fs to %s)", self._interval, self._store.path)

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._exited.is_set()

    @property
    def exited(self) -> bool:
        return self._exited.is_set()

    def request_flush(self) -> None:
        """Post an out-of-band flush to the flusher."""
        self._mailbox.put(FLUSH)

    def request_shutdown(self) -> None:
        """Set the shutdown flag; the ticker schedules the final flush."""
        self._shutdown.set()

    @property
    def final_flush_ok(self) -> bool:
        """Whether the last flush before exit wrote every block."""
        return self._final_ok

    def wait_exited(self, timeout: Optional[float] = None) -> bool:
        """Block until the final flush has completed."""
        return self._exited.wait(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Request shutdown and wait for the final flush.

        A scheduler that was never started flushes synchronously.

        Returns:
            True if the final flush completed within ``timeout`` and
            wrote every block
        """
        if self._ticker is None:
            self._final_ok = self.flush()
            self._exited.set()
            return self._final_ok
        self.request_shutdown()
        return self.wait_exited(timeout) and self._final_ok

    # ========================================================================
    # Flushing
    # ========================================================================

    def flush(self) -> bool:
        """
        Write every block currently in the chain, retrying on storage errors.

        Returns:
            True on success, False once all retries have failed
        """
        blocks = self._chain.snapshot()
        logger.info("Syncing %d blocks to %s", len(blocks), self._store.path)

        for attempt in range(self._retries + 1):
            try:
                self._store.write_all(blocks)
            except StorageError as e:
                self.last_error = e
                if attempt < self._retries:
                    delay = self._backoff * (2 ** attempt)
                    logger.warning(
                        "Flush attempt %d failed: %s (retrying in %.2fs)", attempt + 1, e, delay
                    )
                    time.sleep(delay)
                    continue
                self.failed_flushes += 1
                logger.error("Flush failed after %d attempts: %s", attempt + 1, e)
                return False

            self.flush_count += 1
            self.last_error = None
            return True

        return False

    def _tick_loop(self) -> None:
        while not self._shutdown.wait(self._interval):
            self._mailbox.put(FLUSH)
        logger.info("Shutdown requested, scheduling final flush")
        self._mailbox.put(FLUSH)
        self._mailbox.put(STOP)

    def _flush_loop(self) -> None:
        ok = False
        try:
            while True:
                message = self._mailbox.get()
                if message == STOP:
                    # STOP always follows the final FLUSH
                    self._final_ok = ok
                    break
                ok = self.flush()
        finally:
            self._exited.set()
            logger.info("Flush worker exited")
