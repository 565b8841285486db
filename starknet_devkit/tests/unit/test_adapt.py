"""
Unit tests for argument encoding and result decoding
"""

import logging

import pytest

from starknet_devkit.contract.abi import AbiIndex, Parameter
from starknet_devkit.contract.adapt import (
    ArgumentEncoder,
    ResultDecoder,
    decode_outputs,
    encode_arguments,
    encode_constructor_arguments,
    parse_flat_output,
)
from starknet_devkit.utils.exceptions import (
    ArgumentShapeError,
    ErrorCodes,
    MissingConstructorArguments,
    ParseError,
    PositionalArgumentsRejected,
    TrailingOutput,
    TruncatedOutput,
    UnexpectedConstructorArguments,
    UnparsableSubmissionResult,
)


SEGMENTS_ARGS = {
    "tag": 7,
    "segments": [
        {"start": {"x": 1, "y": 2}, "end": {"x": 3, "y": 4}},
        {"start": {"x": 5, "y": 6}, "end": {"x": 7, "y": 8}},
    ],
    "pair": [9, 10],
}

SEGMENTS_FLAT = ["7", "2", "1", "2", "3", "4", "5", "6", "7", "8", "9", "10"]


def _inputs(abi_index, name):
    return abi_index.get_function(name).inputs


def _outputs(abi_index, name):
    return abi_index.get_function(name).outputs


class TestArgumentEncoder:
    """Test encoding named arguments into flat felts"""

    def test_felts(self, abi_index):
        encoded = ArgumentEncoder(abi_index).encode("double_sum", {"x": 2, "y": 3}, _inputs(abi_index, "double_sum"))
        assert encoded == ["2", "3"]

    def test_follows_abi_order_not_key_order(self, abi_index):
        encoder = ArgumentEncoder(abi_index)
        params = _inputs(abi_index, "double_sum")
        assert encoder.encode("double_sum", {"y": 3, "x": 2}, params) == ["2", "3"]

        reordered = {"pair": SEGMENTS_ARGS["pair"], "segments": SEGMENTS_ARGS["segments"], "tag": 7}
        assert encoder.encode("segments", reordered, _inputs(abi_index, "segments")) == SEGMENTS_FLAT

    def test_numeric_strings(self, abi_index):
        encoded = ArgumentEncoder(abi_index).encode(
            "double_sum", {"x": "0x10", "y": "-5"}, _inputs(abi_index, "double_sum")
        )
        assert encoded == ["16", "-5"]

    def test_array_length_prefix(self, abi_index):
        encoder = ArgumentEncoder(abi_index)
        params = _inputs(abi_index, "sum_array")
        assert encoder.encode("sum_array", {"a": [4, 5, 6]}, params) == ["3", "4", "5", "6"]
        assert encoder.encode("sum_array", {"a": []}, params) == ["0"]

    def test_structs_arrays_and_tuples(self, abi_index):
        encoded = ArgumentEncoder(abi_index).encode("segments", SEGMENTS_ARGS, _inputs(abi_index, "segments"))
        assert encoded == SEGMENTS_FLAT

    def test_tuple_as_tuple(self, abi_index):
        args = dict(SEGMENTS_ARGS, pair=(9, 10))
        encoded = ArgumentEncoder(abi_index).encode("segments", args, _inputs(abi_index, "segments"))
        assert encoded == SEGMENTS_FLAT

    def test_named_tuple_as_mapping(self):
        index = AbiIndex.from_list([])
        params = (Parameter("bounds", "(low : felt, high : felt)"),)
        encoder = ArgumentEncoder(index)
        assert encoder.encode("f", {"bounds": {"high": 2, "low": 1}}, params) == ["1", "2"]
        assert encoder.encode("f", {"bounds": [1, 2]}, params) == ["1", "2"]

    def test_matching_explicit_length_is_accepted(self, abi_index):
        encoded = ArgumentEncoder(abi_index).encode("sum_array", {"a_len": 2, "a": [1, 2]}, _inputs(abi_index, "sum_array"))
        assert encoded == ["2", "1", "2"]

    def test_mismatching_explicit_length(self, abi_index):
        with pytest.raises(ArgumentShapeError, match="a_len"):
            ArgumentEncoder(abi_index).encode("sum_array", {"a_len": 5, "a": [1, 2]}, _inputs(abi_index, "sum_array"))

    def test_positional_arguments(self, abi_index):
        with pytest.raises(ArgumentShapeError) as exc_info:
            ArgumentEncoder(abi_index).encode("double_sum", [2, 3], _inputs(abi_index, "double_sum"))
        assert exc_info.value.details["function"] == "double_sum"
        assert exc_info.value.code == ErrorCodes.ARGUMENT_SHAPE

    def test_missing_argument(self, abi_index):
        with pytest.raises(ArgumentShapeError, match="Missing argument y"):
            ArgumentEncoder(abi_index).encode("double_sum", {"x": 2}, _inputs(abi_index, "double_sum"))

    def test_none_argument(self, abi_index):
        with pytest.raises(ArgumentShapeError, match="y is undefined"):
            ArgumentEncoder(abi_index).encode("double_sum", {"x": 2, "y": None}, _inputs(abi_index, "double_sum"))

    def test_no_arguments_for_no_params(self, abi_index):
        assert ArgumentEncoder(abi_index).encode("get_balance", None, ()) == []
        assert ArgumentEncoder(abi_index).encode("get_balance", {}, ()) == []

    def test_unexpected_argument_is_logged(self, abi_index, caplog):
        with caplog.at_level(logging.WARNING):
            encoded = ArgumentEncoder(abi_index).encode(
                "double_sum", {"x": 2, "y": 3, "z": 4}, _inputs(abi_index, "double_sum")
            )
        assert encoded == ["2", "3"]
        assert "unexpected arguments ['z']" in caplog.text

    @pytest.mark.parametrize("bad_value", ["abc", 1.5, True, {"x": 1}, [1]])
    def test_non_integral_felt(self, abi_index, bad_value):
        with pytest.raises(ArgumentShapeError):
            ArgumentEncoder(abi_index).encode("double_sum", {"x": bad_value, "y": 1}, _inputs(abi_index, "double_sum"))

    def test_array_given_a_scalar(self, abi_index):
        with pytest.raises(ArgumentShapeError, match="felt\\*"):
            ArgumentEncoder(abi_index).encode("sum_array", {"a": 3}, _inputs(abi_index, "sum_array"))

    def test_array_given_a_string(self, abi_index):
        with pytest.raises(ArgumentShapeError):
            ArgumentEncoder(abi_index).encode("sum_array", {"a": "123"}, _inputs(abi_index, "sum_array"))

    def test_struct_given_a_list(self, abi_index):
        args = dict(SEGMENTS_ARGS, segments=[[1, 2, 3, 4]])
        with pytest.raises(ArgumentShapeError, match="Segment struct"):
            ArgumentEncoder(abi_index).encode("segments", args, _inputs(abi_index, "segments"))

    def test_missing_struct_member(self, abi_index):
        args = dict(SEGMENTS_ARGS, segments=[{"start": {"x": 1}, "end": {"x": 3, "y": 4}}])
        with pytest.raises(ArgumentShapeError, match=r"segments\[0\]\.start\.y"):
            ArgumentEncoder(abi_index).encode("segments", args, _inputs(abi_index, "segments"))

    def test_tuple_wrong_size(self, abi_index):
        args = dict(SEGMENTS_ARGS, pair=[1, 2, 3])
        with pytest.raises(ArgumentShapeError, match="2 members, got 3"):
            ArgumentEncoder(abi_index).encode("segments", args, _inputs(abi_index, "segments"))

    def test_convenience_function(self, abi_index):
        assert encode_arguments("double_sum", {"x": 1, "y": 1}, _inputs(abi_index, "double_sum"), abi_index) == ["1", "1"]


class TestConstructorArguments:
    """Test deploy-time argument necessity"""

    def test_initial_balance(self, abi_index):
        assert encode_constructor_arguments(abi_index.constructor, {"initial_balance": 100}, abi_index) == ["100"]

    @pytest.mark.parametrize("args", [None, {}])
    def test_required_but_missing(self, abi_index, args):
        with pytest.raises(MissingConstructorArguments) as exc_info:
            encode_constructor_arguments(abi_index.constructor, args, abi_index)
        assert exc_info.value.code == ErrorCodes.MISSING_CONSTRUCTOR_ARGUMENTS

    def test_given_but_not_required(self, abi_index):
        with pytest.raises(UnexpectedConstructorArguments):
            encode_constructor_arguments(None, {"initial_balance": 100}, abi_index)

    @pytest.mark.parametrize("args", [None, {}])
    def test_none_required_none_given(self, abi_index, args):
        assert encode_constructor_arguments(None, args, abi_index) == []

    def test_parameterless_constructor(self):
        index = AbiIndex.from_list([{"type": "constructor", "name": "constructor", "inputs": [], "outputs": []}])
        assert encode_constructor_arguments(index.constructor, None, index) == []
        with pytest.raises(UnexpectedConstructorArguments):
            encode_constructor_arguments(index.constructor, {"a": 1}, index)

    def test_positional(self, abi_index):
        with pytest.raises(PositionalArgumentsRejected):
            encode_constructor_arguments(abi_index.constructor, [100], abi_index)


class TestResultDecoder:
    """Test rebuilding named outputs from flat felts"""

    def test_single_felt(self, abi_index):
        assert ResultDecoder(abi_index).decode(["10"], _outputs(abi_index, "double_sum")) == {"res": 10}

    def test_hex_values(self, abi_index):
        assert ResultDecoder(abi_index).decode(["0xa"], _outputs(abi_index, "double_sum")) == {"res": 10}

    def test_arrays_tuples_and_structs(self, abi_index):
        flat = [2, 1, 2, 3, 4, 0, 100, 8, 9]
        decoded = ResultDecoder(abi_index).decode(flat, _outputs(abi_index, "segments"))
        assert decoded == {
            "points": [{"x": 1, "y": 2}, {"x": 3, "y": 4}],
            "bounds": {"low": 0, "high": 100},
            "origin": {"x": 8, "y": 9},
        }
        assert "points_len" not in decoded

    def test_empty_array(self, abi_index):
        decoded = ResultDecoder(abi_index).decode([0, 1, 2, 3, 4], _outputs(abi_index, "segments"))
        assert decoded["points"] == []
        assert decoded["origin"] == {"x": 3, "y": 4}

    def test_unnamed_tuple_decodes_to_list(self):
        index = AbiIndex.from_list([])
        decoded = ResultDecoder(index).decode([1, 2], (Parameter("pair", "(felt, felt)"),))
        assert decoded == {"pair": [1, 2]}

    def test_truncated(self, abi_index):
        with pytest.raises(TruncatedOutput) as exc_info:
            ResultDecoder(abi_index).decode([3, 1, 2], _outputs(abi_index, "segments"))
        assert exc_info.value.details["received"] == 3

    def test_truncated_empty(self, abi_index):
        with pytest.raises(TruncatedOutput):
            ResultDecoder(abi_index).decode([], _outputs(abi_index, "double_sum"))

    def test_trailing_strict(self, abi_index):
        with pytest.raises(TrailingOutput) as exc_info:
            ResultDecoder(abi_index).decode([10, 11, 12], _outputs(abi_index, "double_sum"))
        assert exc_info.value.details["trailing"] == [11, 12]

    def test_trailing_lenient(self, abi_index, caplog):
        with caplog.at_level(logging.WARNING):
            decoded = ResultDecoder(abi_index).decode([10, 11], _outputs(abi_index, "double_sum"), strict=False)
        assert decoded == {"res": 10}
        assert "trailing" in caplog.text

    def test_negative_array_length(self, abi_index):
        with pytest.raises(ParseError):
            ResultDecoder(abi_index).decode([-1, 0, 0, 0, 0], _outputs(abi_index, "segments"))

    def test_no_outputs(self, abi_index):
        assert ResultDecoder(abi_index).decode([], ()) == {}


class TestRoundTrip:
    """Decoding what was encoded gives back the value"""

    @pytest.mark.parametrize("value", [
        SEGMENTS_ARGS,
        {"tag": 0, "segments": [], "pair": [0, 0]},
        {"tag": "0x1f", "segments": [{"start": {"x": 1, "y": 1}, "end": {"x": 1, "y": 1}}], "pair": ["2", 3]},
    ])
    def test_segments(self, abi_index, value):
        params = _inputs(abi_index, "segments")
        encoded = encode_arguments("segments", value, params, abi_index)
        decoded = decode_outputs(encoded, params, abi_index)

        assert decoded["tag"] == int(str(value["tag"]), 0)
        assert decoded["segments"] == value["segments"]
        assert decoded["pair"] == [int(v) for v in value["pair"]]

    def test_int_values_round_trip_exactly(self, abi_index):
        params = _inputs(abi_index, "segments")
        encoded = encode_arguments("segments", SEGMENTS_ARGS, params, abi_index)
        assert decode_outputs(encoded, params, abi_index) == SEGMENTS_ARGS

    def test_length_prefix_counts_elements(self, abi_index):
        params = _inputs(abi_index, "segments")
        encoded = encode_arguments("segments", SEGMENTS_ARGS, params, abi_index)
        # tag, then the segments length
        assert encoded[1] == str(len(SEGMENTS_ARGS["segments"]))


class TestParseFlatOutput:
    """Test splitting `starknet call` output"""

    def test_whitespace_separated(self):
        assert parse_flat_output("10 0x1f\n-3\n") == [10, 31, -3]

    def test_empty(self):
        assert parse_flat_output("\n") == []

    def test_garbage(self):
        with pytest.raises(UnparsableSubmissionResult):
            parse_flat_output("Error: something went wrong")
