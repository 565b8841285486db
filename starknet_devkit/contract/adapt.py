"""
Conversion between structured call values and the flat felt sequence

The starknet CLI takes function inputs as a flat list of field elements
and prints outputs the same way. ArgumentEncoder walks a function's
declared parameters and emits that list from a dict of named values;
ResultDecoder consumes a flat list in the same order and rebuilds the
dict.

Walk order, for both directions:
- felt: one value
- array: the length, then each element
- struct: each member in declaration order
- tuple: each member in declaration order, no length; unnamed tuples
  decode to a list, named ones to a dict
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .abi import AbiIndex, AbiType, ArrayType, FeltType, FunctionEntry, Parameter, StructType, TupleType
from ..utils.common import hex_to_int, is_numeric, to_numeric_string
from ..utils.exceptions import (
    ArgumentShapeError,
    MissingConstructorArguments,
    ParseError,
    PositionalArgumentsRejected,
    TrailingOutput,
    UnexpectedConstructorArguments,
    TruncatedOutput,
    UnparsableSubmissionResult,
)

LOG = logging.getLogger(__name__)

StructuredValue = Dict[str, Any]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


class ArgumentEncoder:
    """Encodes named arguments into the flat input list of a CLI call"""

    def __init__(self, abi: AbiIndex):
        self.abi = abi

    def encode(
        self,
        function_name: str,
        args: Optional[Mapping[str, Any]],
        params: Sequence[Parameter]
    ) -> List[str]:
        """
        Encode args against the declared params of function_name.

        Args:
            function_name: Used in error messages only
            args: Argument values keyed by parameter name
            params: The function's declared inputs, in ABI order

        Returns:
            Decimal strings in wire order

        Raises:
            ArgumentShapeError: If args is not a mapping, a parameter is
                missing or a value does not match its declared type
        """
        if args is None:
            args = {}
        if not isinstance(args, Mapping):
            raise ArgumentShapeError(
                f"{function_name}: Arguments should be passed in the form of an object.",
                function_name=function_name
            )

        members = self.abi.resolve_params(params)
        known = set()
        adapted: List[str] = []

        for member in members:
            known.add(member.name)
            if member.name not in args:
                raise ArgumentShapeError(
                    f"{function_name}: Missing argument {member.name} ({member.type})",
                    function_name=function_name
                )
            value = args[member.name]

            if member.length_name:
                known.add(member.length_name)
                self._check_explicit_length(function_name, member.length_name, args, value)

            self._encode_value(function_name, member.name, value, member.type, adapted)

        unexpected = [key for key in args if key not in known]
        if unexpected:
            LOG.warning(f"{function_name}: Ignoring unexpected arguments {unexpected}")

        return adapted

    def _check_explicit_length(self, function_name: str, length_name: str, args: Mapping[str, Any], value: Any):
        # The length is derived from the array; an explicit one must agree
        if length_name not in args or not _is_sequence(value):
            return
        declared = args[length_name]
        if not is_numeric(declared) or hex_to_int(declared) != len(value):
            raise ArgumentShapeError(
                f"{function_name}: {length_name}={declared!r} does not match the length of the array ({len(value)})",
                function_name=function_name
            )

    def _encode_value(self, function_name: str, path: str, value: Any, abi_type: AbiType, adapted: List[str]):
        if value is None:
            raise ArgumentShapeError(
                f"{function_name}: {path} is undefined",
                function_name=function_name
            )

        if isinstance(abi_type, FeltType):
            if not is_numeric(value):
                raise ArgumentShapeError(
                    f"{function_name}: Expected {path} to be a felt, got {value!r}",
                    function_name=function_name
                )
            adapted.append(to_numeric_string(value))

        elif isinstance(abi_type, ArrayType):
            if not _is_sequence(value):
                raise ArgumentShapeError(
                    f"{function_name}: Expected {path} to be a {abi_type}",
                    function_name=function_name
                )
            adapted.append(str(len(value)))
            for i, element in enumerate(value):
                self._encode_value(function_name, f"{path}[{i}]", element, abi_type.element, adapted)

        elif isinstance(abi_type, StructType):
            if not isinstance(value, Mapping):
                raise ArgumentShapeError(
                    f"{function_name}: Expected {path} to be a {abi_type.name} struct",
                    function_name=function_name
                )
            for member in abi_type.members:
                member_path = f"{path}.{member.name}"
                if member.name not in value:
                    raise ArgumentShapeError(
                        f"{function_name}: Missing struct member {member_path}",
                        function_name=function_name
                    )
                self._encode_value(function_name, member_path, value[member.name], member.type, adapted)

        elif isinstance(abi_type, TupleType):
            self._encode_tuple(function_name, path, value, abi_type, adapted)

        else:
            raise TypeError(f"Unsupported ABI type: {abi_type!r}")

    def _encode_tuple(self, function_name: str, path: str, value: Any, abi_type: TupleType, adapted: List[str]):
        if abi_type.is_named and isinstance(value, Mapping):
            for member in abi_type.members:
                if member.name not in value:
                    raise ArgumentShapeError(
                        f"{function_name}: Missing tuple member {path}.{member.name}",
                        function_name=function_name
                    )
                self._encode_value(function_name, f"{path}.{member.name}", value[member.name], member.type, adapted)
            return

        if not _is_sequence(value):
            raise ArgumentShapeError(
                f"{function_name}: Expected {path} to be a tuple {abi_type}",
                function_name=function_name
            )
        if len(value) != len(abi_type.members):
            raise ArgumentShapeError(
                f"{function_name}: Expected {path} to have {len(abi_type.members)} members, got {len(value)}",
                function_name=function_name
            )
        for i, (element, member) in enumerate(zip(value, abi_type.members)):
            self._encode_value(function_name, f"{path}[{i}]", element, member.type, adapted)


class _Cursor:
    """Left to right reader over the flat output values"""

    def __init__(self, values: Sequence[int]):
        self.values = values
        self.index = 0

    @property
    def remaining(self) -> int:
        return len(self.values) - self.index

    def take(self, path: str) -> int:
        if self.index >= len(self.values):
            raise TruncatedOutput(
                f"Output ended before {path} could be read ({len(self.values)} values received)",
                details={"received": len(self.values), "missing": path}
            )
        value = self.values[self.index]
        self.index += 1
        return value


class ResultDecoder:
    """Rebuilds named outputs from the flat value list printed by the CLI"""

    def __init__(self, abi: AbiIndex):
        self.abi = abi

    def decode(
        self,
        flat_values: Sequence[Union[int, str]],
        params: Sequence[Parameter],
        strict: bool = True
    ) -> StructuredValue:
        """
        Decode flat_values against the declared outputs.

        Args:
            flat_values: Ints or numeric strings, in wire order
            params: The function's declared outputs, in ABI order
            strict: Raise TrailingOutput if values are left over;
                otherwise log a warning and drop them

        Raises:
            TruncatedOutput: If the values run out first
            TrailingOutput: If strict and values remain afterwards
        """
        values = [hex_to_int(v) for v in flat_values]
        members = self.abi.resolve_params(params)
        cursor = _Cursor(values)

        result: StructuredValue = {}
        for member in members:
            result[member.name] = self._decode_value(cursor, member.type, member.name)

        if cursor.remaining:
            trailing = values[cursor.index:]
            if strict:
                raise TrailingOutput(
                    f"Output has {len(trailing)} values more than the ABI declares",
                    details={"trailing": trailing}
                )
            LOG.warning(f"Ignoring {len(trailing)} trailing output values: {trailing}")

        return result

    def _decode_value(self, cursor: _Cursor, abi_type: AbiType, path: str) -> Any:
        if isinstance(abi_type, FeltType):
            return cursor.take(path)

        if isinstance(abi_type, ArrayType):
            length = cursor.take(f"{path} length")
            if length < 0:
                raise ParseError(f"Invalid length {length} for array {path}")
            return [
                self._decode_value(cursor, abi_type.element, f"{path}[{i}]")
                for i in range(length)
            ]

        if isinstance(abi_type, StructType):
            return {
                member.name: self._decode_value(cursor, member.type, f"{path}.{member.name}")
                for member in abi_type.members
            }

        if isinstance(abi_type, TupleType):
            if abi_type.is_named:
                return {
                    member.name: self._decode_value(cursor, member.type, f"{path}.{member.name}")
                    for member in abi_type.members
                }
            return [
                self._decode_value(cursor, member.type, f"{path}[{i}]")
                for i, member in enumerate(abi_type.members)
            ]

        raise TypeError(f"Unsupported ABI type: {abi_type!r}")


def parse_flat_output(raw_output: str) -> List[int]:
    """Split the whitespace separated numbers printed by `starknet call`"""
    try:
        return [hex_to_int(part) for part in raw_output.split()]
    except ValueError as e:
        raise UnparsableSubmissionResult(
            f"Cannot interpret the following: {raw_output}",
            details={"response": raw_output},
            cause=e
        )


def encode_constructor_arguments(
    constructor: Optional[FunctionEntry],
    args: Optional[Mapping[str, Any]],
    abi: AbiIndex
) -> List[str]:
    """
    Encode deploy-time arguments.

    A constructor with parameters needs arguments; a contract without
    one (or with an empty one) takes none.

    Raises:
        PositionalArgumentsRejected: args given as a list or tuple
        MissingConstructorArguments: Required but empty
        UnexpectedConstructorArguments: Given but not required
    """
    if isinstance(args, (list, tuple)):
        raise PositionalArgumentsRejected(
            "Constructor arguments should be passed in the form of an object.",
            function_name="constructor"
        )

    if constructor is not None and constructor.inputs:
        if not args:
            raise MissingConstructorArguments(
                "Constructor arguments required but not provided.",
                function_name=constructor.name
            )
        return ArgumentEncoder(abi).encode(constructor.name, args, constructor.inputs)

    if args:
        raise UnexpectedConstructorArguments(
            "Constructor arguments provided but not required.",
            function_name="constructor"
        )
    return []


def encode_arguments(
    function_name: str,
    args: Optional[Mapping[str, Any]],
    params: Sequence[Parameter],
    abi: AbiIndex
) -> List[str]:
    """Convenience wrapper around ArgumentEncoder.encode"""
    return ArgumentEncoder(abi).encode(function_name, args, params)


def decode_outputs(
    flat_values: Sequence[Union[int, str]],
    params: Sequence[Parameter],
    abi: AbiIndex,
    strict: bool = True
) -> StructuredValue:
    """Convenience wrapper around ResultDecoder.decode"""
    return ResultDecoder(abi).decode(flat_values, params, strict=strict)
