"""
Pytest fixtures: raw Transfer logs built the way a node returns them, and a
mocked Web3 client.
"""
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

sys.path.insert(0, str(Path(__file__).parent.parent))

from transfers import TRANSFER_TOPIC  # noqa: E402

ALICE = Web3.to_checksum_address("0x" + "a1" * 20)
BOB = Web3.to_checksum_address("0x" + "b2" * 20)
CAROL = Web3.to_checksum_address("0x" + "c3" * 20)


def address_topic(address):
    return HexBytes(b"\x00" * 12 + bytes.fromhex(address[2:]))


def make_log(sender, receiver, value=1, **overrides):
    log = {
        "topics": [HexBytes(TRANSFER_TOPIC), address_topic(sender), address_topic(receiver)],
        "data": HexBytes(encode(["uint256"], [value])),
        "transactionHash": HexBytes(b"\x11" * 32),
        "logIndex": 0,
    }
    log.update(overrides)
    return log


@pytest.fixture
def scenario_logs():
    """A -> B, B -> A, A -> A"""
    return [make_log(ALICE, BOB), make_log(BOB, ALICE), make_log(ALICE, ALICE)]


@pytest.fixture
def fake_w3(scenario_logs):
    w3 = MagicMock()
    w3.eth.get_block.return_value = {"number": 1000}
    w3.eth.get_logs.return_value = scenario_logs
    return w3
