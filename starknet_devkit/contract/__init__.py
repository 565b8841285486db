from .abi import AbiCache, AbiIndex, ArrayType, FeltType, StructType, TupleType
from .adapt import ArgumentEncoder, ResultDecoder, decode_outputs, encode_arguments
from .contract import StarknetContract, StarknetContractFactory
from .status import (
    CliStatusQuery,
    PollingOptions,
    PollState,
    StatusObject,
    TransactionRecord,
    TransactionStatusPoller,
    TxStatus,
)
