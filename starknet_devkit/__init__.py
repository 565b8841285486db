"""
starknet-devkit

Deploy, invoke and call StarkNet (Cairo 0) contracts through the
`starknet` CLI, with structured arguments and results adapted to the
flat felt encoding from the contract ABI, and transaction status
polling until a transaction settles.

Usage:
    config = ConfigManager().load("starknet-devkit.yaml")
    runtime = StarknetRuntime(config)
    factory = runtime.get_contract_factory("contract.cairo")
    contract = await factory.deploy({"initial_balance": 100})
    result = await contract.call("get_balance")
"""

from .contract import (
    AbiCache,
    AbiIndex,
    ArgumentEncoder,
    PollingOptions,
    ResultDecoder,
    StarknetContract,
    StarknetContractFactory,
    TransactionRecord,
    TransactionStatusPoller,
    TxStatus,
)
from .core.runtime import StarknetRuntime
from .utils.config_manager import ConfigManager, StarknetConfig

__version__ = "0.1.0"
