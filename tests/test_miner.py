"""
Unit tests for the Proof of Work miner.

Tests:
- Write-once result cell
- Valid nonce search (single and multi-threaded)
- Exhausted search space
- Mining failures surfaced by the chain store
"""

import threading

import pytest

from powledger.blockchain.block import genesis_skeleton, hash_with_nonce, meets_target
from powledger.blockchain.ledger import Blockchain
from powledger.blockchain.miner import FoundNonce, Miner
from powledger.exceptions import MiningExhausted, ValidationError


class TestFoundNonce:
    """Tests for the shared result cell."""

    def test_first_publish_wins(self):
        """Only the first published nonce is kept."""
        found = FoundNonce()
        assert not found.is_set()
        assert found.publish(7)
        assert not found.publish(9)
        assert found.is_set()
        assert found.nonce == 7

    def test_concurrent_publish(self):
        """Exactly one of many racing publishers wins."""
        found = FoundNonce()
        results = []
        threads = [
            threading.Thread(target=lambda n=n: results.append(found.publish(n)))
            for n in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1
        assert found.nonce in range(8)


class TestMiner:
    """Tests for the parallel nonce search."""

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            Miner(workers=0)

    def test_default_workers(self):
        assert Miner().workers >= 1

    def test_mining_finds_valid_nonce(self):
        """Mined nonce puts the hash below the target."""
        skeleton = genesis_skeleton(timestamp=1000)
        nonce = Miner(workers=4).mine(skeleton, difficulty=8)
        assert nonce is not None
        assert meets_target(hash_with_nonce(skeleton, nonce), 8)

    def test_single_worker_finds_smallest_nonce(self):
        """One worker scans sequentially, so it returns the first valid nonce."""
        skeleton = genesis_skeleton(timestamp=1000)
        expected = 0
        while not meets_target(hash_with_nonce(skeleton, expected), 8):
            expected += 1
        assert Miner(workers=1).mine(skeleton, difficulty=8) == expected

    def test_repeated_mining_valid(self):
        """Mining the same skeleton twice yields valid nonces both times."""
        skeleton = genesis_skeleton(timestamp=1000)
        miner = Miner(workers=3)
        first = miner.mine(skeleton, difficulty=10)
        second = miner.mine(skeleton, difficulty=10)
        assert meets_target(hash_with_nonce(skeleton, first), 10)
        assert meets_target(hash_with_nonce(skeleton, second), 10)

    def test_exhausted_search_space(self):
        """A search bounded below any solution gives up."""
        skeleton = genesis_skeleton(timestamp=1000)
        assert Miner(workers=2).mine(skeleton, difficulty=256, max_nonce=64) is None

    def test_invalid_difficulty(self):
        with pytest.raises(ValueError):
            Miner(workers=1).mine(genesis_skeleton(), difficulty=0)


class _ExhaustedMiner(Miner):
    def mine(self, skeleton, difficulty, max_nonce=None):
        return None


class _WrongNonceMiner(Miner):
    def mine(self, skeleton, difficulty, max_nonce=None):
        nonce = 0
        while meets_target(hash_with_nonce(skeleton, nonce), difficulty):
            nonce += 1
        return nonce


class TestMiningFailures:
    """Chain store reaction to miner failures."""

    def test_exhausted_genesis(self):
        chain = Blockchain(_ExhaustedMiner(workers=1), difficulty=8)
        with pytest.raises(MiningExhausted):
            chain.init_genesis()

    def test_exhausted_append(self, chain):
        chain.init_genesis()
        chain._miner = _ExhaustedMiner(workers=1)
        with pytest.raises(MiningExhausted):
            chain.append_next()
        assert chain.length == 1

    def test_invalid_mined_block(self):
        """A nonce that misses the target is never installed."""
        chain = Blockchain(_WrongNonceMiner(workers=1), difficulty=8)
        with pytest.raises(ValidationError):
            chain.init_genesis()
        assert chain.length == 0
