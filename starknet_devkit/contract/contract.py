"""
Contract factory and contract handle

StarknetContractFactory deploys new instances of a compiled contract;
StarknetContract invokes and calls functions of a deployed instance.
Both build `starknet` CLI commands, encode arguments through
ArgumentEncoder and wait for transactions with TransactionStatusPoller.

Usage:
    factory = runtime.get_contract_factory("contract.cairo")
    contract = await factory.deploy({"initial_balance": 100})
    await contract.invoke("increase_balance", {"amount": 10})
    result = await contract.call("get_balance")
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

from .abi import AbiCache, AbiIndex, FunctionEntry
from .adapt import (
    ArgumentEncoder,
    ResultDecoder,
    StructuredValue,
    encode_constructor_arguments,
    parse_flat_output,
)
from .status import (
    CliStatusQuery,
    PollingOptions,
    StatusQuery,
    TransactionRecord,
    TransactionStatusPoller,
)
from ..core.wrapper import ProcessResult, StarknetWrapper
from ..utils.common import adapt_log, extract_address, extract_tx_hash, is_numeric, to_numeric_string
from ..utils.exceptions import (
    ArgumentShapeError,
    ConfigurationError,
    ContractNotDeployed,
    DeploymentRejected,
    EmptyAddress,
    InvocationFailed,
    PositionalArgumentsRejected,
    TransactionRejected,
    UnknownFunction,
)

LOG = logging.getLogger(__name__)

Numeric = Union[int, str]


@dataclass
class StarknetContractConfig:
    """Everything a contract handle needs to talk to the network"""
    wrapper: StarknetWrapper
    abi_path: str
    gateway_url: str
    feeder_gateway_url: str
    status_query: Optional[StatusQuery] = None
    polling_options: Optional[PollingOptions] = None
    abi_cache: Optional[AbiCache] = None

    def load_abi(self) -> AbiIndex:
        if self.abi_cache is not None:
            return self.abi_cache.load(self.abi_path)
        return AbiIndex.load(self.abi_path)

    def make_poller(self) -> TransactionStatusPoller:
        return TransactionStatusPoller(
            self.status_query or CliStatusQuery(self.wrapper),
            self.polling_options
        )


@dataclass
class StarknetContractFactoryConfig(StarknetContractConfig):
    metadata_path: str = ""


def handle_signature(signature: Optional[Sequence[Numeric]], starknet_args: List[str]) -> None:
    """
    Append the --signature flag and its elements, if there are any.

    Raises:
        ArgumentShapeError: signature is not a list of numbers
    """
    if signature is None:
        return
    if isinstance(signature, (str, bytes)) or not isinstance(signature, Sequence):
        raise ArgumentShapeError(f"Signature should be a list of numbers, got {signature!r}")
    for i, part in enumerate(signature):
        if not is_numeric(part):
            raise ArgumentShapeError(f"Expected signature[{i}] to be a felt, got {part!r}")
    if signature:
        starknet_args.append("--signature")
        starknet_args.extend(to_numeric_string(part) for part in signature)


class StarknetContractFactory:
    """Deploys instances of one compiled contract"""

    def __init__(self, config: StarknetContractFactoryConfig):
        self.config = config
        self.wrapper = config.wrapper
        self.abi_path = config.abi_path
        self.metadata_path = config.metadata_path
        self.abi = config.load_abi()
        self.constructor_abi: Optional[FunctionEntry] = self.abi.constructor
        self.poller = config.make_poller()

    async def deploy(
        self,
        constructor_args: Optional[Mapping[str, Any]] = None,
        signature: Optional[Sequence[Numeric]] = None
    ) -> "StarknetContract":
        """
        Deploy a contract instance to a new address.

        E.g. for a contract with
        ```text
        @constructor
        func constructor{...}(initial_balance : felt):
        ```
        deploy it with ``await factory.deploy({"initial_balance": 100})``.

        Returns:
            A contract handle whose address is set, once the deploy
            transaction is accepted

        Raises:
            MissingConstructorArguments, UnexpectedConstructorArguments,
            ArgumentShapeError: Bad constructor arguments
            DeploymentRejected: The CLI failed to submit the deployment
            UnparsableSubmissionResult: Address or hash missing from output
            TransactionRejected: The deploy transaction was rejected; the
                assigned address is available as ``contract_address``
        """
        starknet_args = [
            "deploy",
            "--contract", self.metadata_path,
            "--gateway_url", self.wrapper.adapt_url(self.config.gateway_url),
        ]
        self.handle_constructor_arguments(constructor_args, starknet_args)
        handle_signature(signature, starknet_args)

        executed = await self.wrapper.run_command("starknet", starknet_args, [self.metadata_path])
        if executed.status_code:
            msg = "Could not deploy contract. Check the network url in config. Is it responsive?"
            if executed.stderr:
                msg += "\n" + adapt_log(executed.stderr)
            raise DeploymentRejected(msg, status_code=executed.status_code)

        output = executed.stdout
        address = extract_address(output)
        tx_hash = extract_tx_hash(output)
        LOG.info(f"Deployed contract at {address}, transaction {tx_hash}")

        contract = StarknetContract(self.config)
        contract.address = address

        tx = TransactionRecord(tx_hash, self.config.gateway_url, self.config.feeder_gateway_url)
        try:
            await self.poller.wait(tx)
        except TransactionRejected as e:
            raise TransactionRejected(
                f"Deployment of {address} rejected.",
                tx_hash=tx_hash,
                contract_address=address,
                details=dict(e.details),
                cause=e
            )
        contract.deploy_tx = tx
        return contract

    def handle_constructor_arguments(
        self,
        constructor_args: Optional[Mapping[str, Any]],
        starknet_args: List[str]
    ) -> None:
        """Validate constructor arguments and append them as --inputs"""
        inputs = encode_constructor_arguments(self.constructor_abi, constructor_args, self.abi)
        if inputs:
            starknet_args.append("--inputs")
            starknet_args.extend(inputs)

    def get_contract_at(self, address: str) -> "StarknetContract":
        """
        Returns a contract instance with set address.
        No address validity checks are performed.

        Raises:
            EmptyAddress: If address is empty
        """
        if not address:
            raise EmptyAddress("No address provided")
        contract = StarknetContract(self.config)
        contract.address = address
        return contract


class StarknetContract:
    """A contract instance, bound to an address once it is known"""

    def __init__(self, config: StarknetContractConfig):
        self.config = config
        self.wrapper = config.wrapper
        self.abi_path = config.abi_path
        self.abi = config.load_abi()
        self.poller = config.make_poller()
        self._address: Optional[str] = None
        self.deploy_tx: Optional[TransactionRecord] = None

    @property
    def address(self) -> Optional[str]:
        return self._address

    @address.setter
    def address(self, value: str) -> None:
        if self._address is not None:
            raise ConfigurationError(f"Contract address already set to {self._address}")
        if not value:
            raise EmptyAddress("No address provided")
        self._address = value

    def _get_function(self, function_name: str) -> FunctionEntry:
        func = self.abi.get_function(function_name)
        if func is None:
            raise UnknownFunction(
                f"Function '{function_name}' doesn't exist on this contract.",
                function_name=function_name
            )
        return func

    async def _invoke_or_call(
        self,
        kind: str,
        function_name: str,
        args: Optional[Mapping[str, Any]],
        signature: Optional[Sequence[Numeric]]
    ) -> ProcessResult:
        if not self.address:
            raise ContractNotDeployed("Contract not deployed")

        func = self._get_function(function_name)

        if isinstance(args, (list, tuple)):
            raise PositionalArgumentsRejected(
                "Arguments should be passed in the form of an object.",
                function_name=function_name
            )

        starknet_args = [
            kind,
            "--address", self.address,
            "--abi", self.abi_path,
            "--function", function_name,
            "--gateway_url", self.wrapper.adapt_url(self.config.gateway_url),
            "--feeder_gateway_url", self.wrapper.adapt_url(self.config.feeder_gateway_url),
        ]

        inputs = ArgumentEncoder(self.abi).encode(function_name, args, func.inputs)
        if inputs:
            starknet_args.append("--inputs")
            starknet_args.extend(inputs)

        handle_signature(signature, starknet_args)

        executed = await self.wrapper.run_command("starknet", starknet_args, [self.abi_path])
        if executed.status_code:
            msg = f"Could not {kind} {function_name}:\n" + executed.stderr
            raise InvocationFailed(adapt_log(msg), status_code=executed.status_code)

        return executed

    async def invoke(
        self,
        function_name: str,
        args: Optional[Mapping[str, Any]] = None,
        signature: Optional[Sequence[Numeric]] = None
    ) -> TransactionRecord:
        """
        Invoke the function by name and optionally provide arguments.
        For a usage example see `call`.

        Returns:
            The transaction, once its status is at least PENDING in a
            settled block
        """
        executed = await self._invoke_or_call("invoke", function_name, args, signature)
        tx_hash = extract_tx_hash(executed.stdout)
        LOG.info(f"Invoked {function_name} on {self.address}, transaction {tx_hash}")

        tx = TransactionRecord(tx_hash, self.config.gateway_url, self.config.feeder_gateway_url)
        await self.poller.wait(tx)
        return tx

    async def call(
        self,
        function_name: str,
        args: Optional[Mapping[str, Any]] = None,
        signature: Optional[Sequence[Numeric]] = None
    ) -> StructuredValue:
        """
        Call the function by name and optionally provide arguments.

        E.g. if your contract has a function
        ```text
        func double_sum(x : felt, y : felt) -> (res : felt):
            return (res=(x + y) * 2)
        end
        ```
        then ``await contract.call("double_sum", {"x": 2, "y": 3})``
        returns ``{"res": 10}``.
        """
        executed = await self._invoke_or_call("call", function_name, args, signature)
        func = self._get_function(function_name)
        flat_values = parse_flat_output(executed.stdout)
        return ResultDecoder(self.abi).decode(flat_values, func.outputs)
