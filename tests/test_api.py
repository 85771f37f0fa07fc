"""
Unit tests for the Ledger API facade.

Tests:
- Block and range queries
- Payload views
- Transaction publishing and input validation
"""

import pytest

from powledger.api.facade import LedgerAPI, block_view, parse_address, payload_view
from powledger.blockchain.block import ZERO_HASH, BinaryData, Block, Transaction
from powledger.exceptions import ApiError, InputError


FROM = "ab" * 32
TO = "CD" * 32


@pytest.fixture
def api(mined_chain):
    return LedgerAPI(mined_chain)


class TestQueries:
    """Tests for block lookups."""

    def test_block_view(self, api, mined_chain):
        view = api.block(1)
        block = mined_chain.get_block(1)
        assert view['id'] == 1
        assert view['nonce'] == block.nonce
        assert view['timestamp'] == block.timestamp
        assert view['hash'] == block.hash().hex().upper()
        assert view['prev_block_hash'] == mined_chain.get_block(0).hash().hex().upper()
        assert view['data'] == {'type': 'BinaryData', 'data': b"Block 1".hex()}

    def test_genesis_view(self, api):
        view = api.block(0)
        assert view['prev_block_hash'] == "0" * 64
        assert view['data']['data'] == b"Genesis block".hex()

    def test_missing_block(self, api):
        with pytest.raises(ApiError, match="Block does not exist"):
            api.block(3)
        with pytest.raises(ApiError, match="Block does not exist"):
            api.block(-1)

    def test_blocks_range(self, api):
        assert [v['id'] for v in api.blocks(0, 3)] == [0, 1, 2]
        assert [v['id'] for v in api.blocks(2, 1)] == [2]

    def test_blocks_past_tip(self, api):
        with pytest.raises(ApiError, match="Block does not exist"):
            api.blocks(0, 100)
        with pytest.raises(ApiError):
            api.blocks(2, 2)

    def test_chain_length(self, api):
        assert api.chain_length() == 3

    def test_only_primary_payload_exposed(self):
        block_payloads = [BinaryData(b"first"), BinaryData(b"second")]
        view = block_view(Block.skeleton(1, ZERO_HASH, block_payloads))
        assert view['data'] == {'type': 'BinaryData', 'data': b"first".hex()}


class TestPublishTransaction:
    """Tests for the transaction mutation."""

    def test_publish(self, api, mined_chain):
        view = api.publish_transaction(FROM, TO, 25)
        assert view == {
            'type': 'Transaction',
            'sender': FROM.upper(),
            'recipient': TO,
            'amount': 25,
        }
        assert mined_chain.pending_payloads == [
            Transaction(bytes.fromhex(FROM), bytes.fromhex(TO), 25)
        ]
        assert api.pending() == [view]

    def test_publish_does_not_change_chain(self, api):
        api.publish_transaction(FROM, TO, 1)
        assert api.chain_length() == 3

    def test_invalid_hex_from(self, api):
        with pytest.raises(InputError, match="Invalid hex from address"):
            api.publish_transaction("zz" * 32, TO, 1)

    def test_invalid_hex_to(self, api):
        with pytest.raises(InputError, match="Invalid hex to address"):
            api.publish_transaction(FROM, "abc", 1)

    def test_invalid_length_from(self, api):
        with pytest.raises(InputError, match="Invalid length from address"):
            api.publish_transaction("ab" * 31, TO, 1)

    def test_invalid_length_to(self, api):
        with pytest.raises(InputError, match="Invalid length to address"):
            api.publish_transaction(FROM, "cd" * 33, 1)

    def test_from_checked_before_to(self, api):
        with pytest.raises(InputError, match="from"):
            api.publish_transaction("xx", "yy", 1)

    def test_invalid_amount(self, api):
        for amount in (-1, 2 ** 64, 1.5, "10", True):
            with pytest.raises(InputError, match="Invalid amount"):
                api.publish_transaction(FROM, TO, amount)

    def test_max_amount(self, api):
        assert api.publish_transaction(FROM, TO, 2 ** 64 - 1)['amount'] == 2 ** 64 - 1

    def test_input_error_is_api_error(self, api):
        with pytest.raises(ApiError):
            api.publish_transaction("", TO, 1)

    def test_rejected_input_not_queued(self, api, mined_chain):
        with pytest.raises(InputError):
            api.publish_transaction(FROM, "00", 1)
        assert mined_chain.pending_payloads == []


class TestViews:
    """Tests for payload rendering."""

    def test_transaction_view_uses_recipient(self):
        tx = Transaction(b'\x01' * 32, b'\x02' * 32, 3)
        view = payload_view(tx)
        assert view['sender'] == "01" * 32
        assert view['recipient'] == "02" * 32

    def test_binary_view_lowercase(self):
        assert payload_view(BinaryData(b"\xAB\xCD")) == {'type': 'BinaryData', 'data': "abcd"}

    def test_parse_address_accepts_mixed_case(self):
        assert parse_address("aB" * 32, "from") == b'\xab' * 32
