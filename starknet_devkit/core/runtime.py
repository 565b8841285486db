"""
StarkNet runtime - wiring of configuration and collaborators

Builds, from one StarknetConfig, the CLI wrapper, the status query
collaborator, the ABI cache and the polling options shared by every
contract factory and handle it hands out.

Usage:
    runtime = StarknetRuntime(ConfigManager().load("starknet-devkit.yaml"))
    factory = runtime.get_contract_factory("contract.cairo")
    contract = await factory.deploy({"initial_balance": 100})

    async with StarknetRuntime(config) as runtime:
        status = await runtime.get_transaction_status(tx_hash)
"""

import logging
from pathlib import Path
from typing import Optional

from .client.feeder_gateway_client import FeederGatewayClient
from .wrapper import DockerWrapper, StarknetWrapper, VenvWrapper
from ..contract.abi import AbiCache
from ..contract.contract import (
    StarknetContract,
    StarknetContractConfig,
    StarknetContractFactory,
    StarknetContractFactoryConfig,
)
from ..contract.status import (
    CliStatusQuery,
    PollingOptions,
    StatusObject,
    StatusQuery,
    TransactionRecord,
    TransactionStatusPoller,
)
from ..utils.config_manager import StarknetConfig
from ..utils.exceptions import AbiNotFound

LOG = logging.getLogger(__name__)


def create_wrapper(config: StarknetConfig) -> StarknetWrapper:
    """Pick the CLI runner the configuration asks for"""
    if config.venv is not None:
        LOG.debug(f"Using starknet from venv {config.venv}")
        return VenvWrapper(config.venv)
    LOG.debug(f"Using starknet from docker image tag {config.dockerized_version}")
    return DockerWrapper.from_version(config.dockerized_version)


class StarknetRuntime:
    """Shared collaborators for all contracts of one network"""

    def __init__(
        self,
        config: StarknetConfig,
        wrapper: Optional[StarknetWrapper] = None,
        status_query: Optional[StatusQuery] = None
    ):
        """
        Args:
            config: Validated configuration
            wrapper: Overrides the wrapper built from config
            status_query: Overrides the status query built from config
        """
        self.config = config
        self.network = config.network
        self.wrapper = wrapper or create_wrapper(config)
        if status_query is None:
            if config.status_query == "feeder_gateway":
                status_query = FeederGatewayClient()
            else:
                status_query = CliStatusQuery(self.wrapper)
        self.status_query = status_query
        self.abi_cache = AbiCache()
        self.polling_options = PollingOptions(
            interval=config.poll_interval,
            max_attempts=config.max_poll_attempts,
            timeout=config.poll_timeout,
        )

    async def __aenter__(self):
        if isinstance(self.status_query, FeederGatewayClient):
            await self.status_query.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if isinstance(self.status_query, FeederGatewayClient):
            await self.status_query.__aexit__(exc_type, exc_val, exc_tb)

    def artifact_paths(self, contract_path: str):
        """
        Locate the compiled artifacts of a contract source.

        For "contracts/contract.cairo" these are
        <artifacts>/contracts/contract.cairo/contract.json and
        <artifacts>/contracts/contract.cairo/contract_abi.json.

        Returns:
            (metadata_path, abi_path)
        """
        artifacts_dir = Path(self.config.artifacts_path) / contract_path
        stem = Path(contract_path).stem
        return artifacts_dir / f"{stem}.json", artifacts_dir / f"{stem}_abi.json"

    def _contract_config(self, abi_path: Path) -> StarknetContractConfig:
        return StarknetContractConfig(
            wrapper=self.wrapper,
            abi_path=str(abi_path),
            gateway_url=self.network.gateway_url,
            feeder_gateway_url=self.network.feeder_gateway_url,
            status_query=self.status_query,
            polling_options=self.polling_options,
            abi_cache=self.abi_cache,
        )

    def get_contract_factory(self, contract_path: str) -> StarknetContractFactory:
        """
        Build a factory for a compiled contract.

        Raises:
            AbiNotFound: The metadata or the ABI artifact is missing
        """
        metadata_path, abi_path = self.artifact_paths(contract_path)
        for path in (metadata_path, abi_path):
            if not path.is_file():
                raise AbiNotFound(
                    f"Could not find {path}. Is {contract_path} compiled?",
                    config_file=str(path)
                )

        base = self._contract_config(abi_path)
        config = StarknetContractFactoryConfig(
            **base.__dict__,
            metadata_path=str(metadata_path),
        )
        return StarknetContractFactory(config)

    def get_contract_at(self, contract_path: str, address: str) -> StarknetContract:
        """Handle for an already deployed instance of a compiled contract"""
        return self.get_contract_factory(contract_path).get_contract_at(address)

    def transaction(self, tx_hash: str) -> TransactionRecord:
        return TransactionRecord(tx_hash, self.network.gateway_url, self.network.feeder_gateway_url)

    async def get_transaction_status(self, tx_hash: str) -> StatusObject:
        """Current status of a transaction, without waiting"""
        poller = TransactionStatusPoller(self.status_query, self.polling_options)
        return await poller.check_status(self.transaction(tx_hash))

    async def wait_for_transaction(self, tx_hash: str) -> StatusObject:
        """Wait until a transaction is accepted, using the configured bounds"""
        poller = TransactionStatusPoller(self.status_query, self.polling_options)
        return await poller.wait(self.transaction(tx_hash))
