"""
Pytest configuration and fixtures for starknet-devkit tests.

Provides sample ABIs, ABI files on disk, and a fake CLI wrapper whose
run_command is an AsyncMock, so contract flows run without a network.

Usage:
    def test_something(abi_index, fake_wrapper):
        fake_wrapper.run_command.return_value = ProcessResult(0, "...", "")
"""

import json
from typing import List
from unittest.mock import AsyncMock

import pytest

from starknet_devkit.contract.abi import AbiIndex
from starknet_devkit.contract.status import PollingOptions
from starknet_devkit.core.wrapper import ProcessResult, StarknetWrapper


CONTRACT_ABI = [
    {
        "type": "struct",
        "name": "Point",
        "size": 2,
        "members": [
            {"name": "x", "type": "felt", "offset": 0},
            {"name": "y", "type": "felt", "offset": 1},
        ],
    },
    {
        "type": "struct",
        "name": "Segment",
        "size": 4,
        "members": [
            {"name": "start", "type": "Point", "offset": 0},
            {"name": "end", "type": "Point", "offset": 2},
        ],
    },
    {
        "type": "constructor",
        "name": "constructor",
        "inputs": [{"name": "initial_balance", "type": "felt"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "increase_balance",
        "inputs": [{"name": "amount", "type": "felt"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "get_balance",
        "inputs": [],
        "outputs": [{"name": "res", "type": "felt"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "double_sum",
        "inputs": [
            {"name": "x", "type": "felt"},
            {"name": "y", "type": "felt"},
        ],
        "outputs": [{"name": "res", "type": "felt"}],
        "stateMutability": "view",
    },
    {
        "type": "function",
        "name": "sum_array",
        "inputs": [
            {"name": "a_len", "type": "felt"},
            {"name": "a", "type": "felt*"},
        ],
        "outputs": [{"name": "res", "type": "felt"}],
    },
    {
        "type": "function",
        "name": "segments",
        "inputs": [
            {"name": "tag", "type": "felt"},
            {"name": "segments_len", "type": "felt"},
            {"name": "segments", "type": "Segment*"},
            {"name": "pair", "type": "(felt, felt)"},
        ],
        "outputs": [
            {"name": "points_len", "type": "felt"},
            {"name": "points", "type": "Point*"},
            {"name": "bounds", "type": "(low : felt, high : felt)"},
            {"name": "origin", "type": "Point"},
        ],
    },
    {
        "type": "event",
        "name": "balance_increased",
        "data": [{"name": "amount", "type": "felt"}],
        "keys": [],
    },
]

NO_CONSTRUCTOR_ABI = [
    {
        "type": "function",
        "name": "get_balance",
        "inputs": [],
        "outputs": [{"name": "res", "type": "felt"}],
    },
]

DEPLOY_OUTPUT = (
    "Deploy transaction was sent.\n"
    "Contract address: 0x0123\n"
    "Transaction hash: 0xabc\n"
)

INVOKE_OUTPUT = (
    "Invoke transaction was sent.\n"
    "Contract address: 0x0123\n"
    "Transaction hash: 0xdef\n"
)

ACCEPTED_STATUS = json.dumps({"tx_status": "ACCEPTED_ONCHAIN", "block_hash": "0x1"})
PENDING_STATUS = json.dumps({"tx_status": "PENDING", "block_hash": "pending"})
RECEIVED_STATUS = json.dumps({"tx_status": "RECEIVED"})
REJECTED_STATUS = json.dumps({
    "tx_status": "REJECTED",
    "tx_failure_reason": {"code": "TRANSACTION_FAILED", "error_message": "assert failed"},
})


def status_result(status_json: str) -> ProcessResult:
    return ProcessResult(0, status_json, "")


class FakeWrapper(StarknetWrapper):
    """Wrapper whose run_command is an AsyncMock; no processes are started"""

    def __init__(self, results: List[ProcessResult] = None):
        self.run_command = AsyncMock(side_effect=results) if results else AsyncMock()

    def prepare_command(self, command, args, paths):
        return [command, *args]


@pytest.fixture
def contract_abi():
    return CONTRACT_ABI


@pytest.fixture
def abi_index():
    return AbiIndex.from_list(CONTRACT_ABI)


@pytest.fixture
def abi_file(tmp_path):
    path = tmp_path / "contract_abi.json"
    path.write_text(json.dumps(CONTRACT_ABI))
    return path


@pytest.fixture
def no_constructor_abi_file(tmp_path):
    path = tmp_path / "plain_abi.json"
    path.write_text(json.dumps(NO_CONSTRUCTOR_ABI))
    return path


@pytest.fixture
def metadata_file(tmp_path):
    path = tmp_path / "contract.json"
    path.write_text(json.dumps({"abi": CONTRACT_ABI, "program": {}}))
    return path


@pytest.fixture
def fast_polling():
    return PollingOptions(interval=0.01)


@pytest.fixture
def fake_wrapper():
    return FakeWrapper()
