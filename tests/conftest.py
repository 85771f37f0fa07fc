"""Shared fixtures: low difficulty and two mining threads keep tests fast."""

import pytest

from powledger.blockchain.ledger import Blockchain
from powledger.blockchain.miner import Miner


TEST_DIFFICULTY = 8


@pytest.fixture
def miner():
    return Miner(workers=2)


@pytest.fixture
def chain(miner):
    """Empty chain store."""
    return Blockchain(miner, difficulty=TEST_DIFFICULTY)


@pytest.fixture
def mined_chain(chain):
    """Genesis plus two appended blocks."""
    chain.init_genesis()
    chain.append_next()
    chain.append_next()
    return chain
