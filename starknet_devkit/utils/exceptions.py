"""
Exception hierarchy for starknet-devkit

Every failure raised by the devkit derives from StarknetDevkitError and
carries a human readable message, an optional numeric code from ErrorCodes
and a details dict with the values that caused it.
"""

from typing import Any, Dict, Optional


class ErrorCodes:
    """Numeric error codes, grouped by family"""

    # Configuration (1xxx)
    CONFIG_FILE_NOT_FOUND = 1001
    CONFIG_VALIDATION_FAILED = 1002
    UNKNOWN_NETWORK = 1003
    ABI_NOT_FOUND = 1101
    MALFORMED_ABI = 1102
    EMPTY_ADDRESS = 1201
    CONTRACT_NOT_DEPLOYED = 1202

    # Arguments (2xxx)
    ARGUMENT_SHAPE = 2001
    POSITIONAL_ARGUMENTS = 2002
    MISSING_CONSTRUCTOR_ARGUMENTS = 2003
    UNEXPECTED_CONSTRUCTOR_ARGUMENTS = 2004
    UNKNOWN_FUNCTION = 2005

    # Submission (3xxx)
    DEPLOYMENT_REJECTED = 3001
    INVOCATION_FAILED = 3002

    # Parsing (4xxx)
    UNPARSABLE_SUBMISSION_RESULT = 4001
    STATUS_QUERY_FAILED = 4002
    STATUS_PARSE_ERROR = 4003
    TRUNCATED_OUTPUT = 4004
    TRAILING_OUTPUT = 4005

    # Transaction lifecycle (5xxx)
    TRANSACTION_REJECTED = 5001
    POLLING_TIMEOUT = 5002
    POLLING_CANCELLED = 5003


class StarknetDevkitError(Exception):
    """Base exception class for starknet-devkit"""

    default_code: Optional[int] = None

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.code = code if code is not None else self.default_code
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.code is not None:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for JSON output"""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


# Configuration errors

class ConfigurationError(StarknetDevkitError):
    """Invalid configuration, ABI or contract handle state"""

    default_code = ErrorCodes.CONFIG_VALIDATION_FAILED

    def __init__(self, message: str, config_file: Optional[str] = None, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if config_file is not None:
            details["config_file"] = config_file
        if field is not None:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)


class AbiNotFound(ConfigurationError):
    """ABI file missing, unreadable or not JSON"""
    default_code = ErrorCodes.ABI_NOT_FOUND


class MalformedAbi(ConfigurationError):
    """ABI document does not have the expected structure"""
    default_code = ErrorCodes.MALFORMED_ABI


class EmptyAddress(ConfigurationError):
    default_code = ErrorCodes.EMPTY_ADDRESS


class ContractNotDeployed(ConfigurationError):
    default_code = ErrorCodes.CONTRACT_NOT_DEPLOYED


# Argument errors

class ArgumentError(StarknetDevkitError):
    """Caller supplied arguments that cannot be encoded"""

    def __init__(self, message: str, function_name: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if function_name is not None:
            details["function"] = function_name
        super().__init__(message, details=details, **kwargs)


class ArgumentShapeError(ArgumentError):
    default_code = ErrorCodes.ARGUMENT_SHAPE


class PositionalArgumentsRejected(ArgumentShapeError):
    default_code = ErrorCodes.POSITIONAL_ARGUMENTS


class MissingConstructorArguments(ArgumentError):
    default_code = ErrorCodes.MISSING_CONSTRUCTOR_ARGUMENTS


class UnexpectedConstructorArguments(ArgumentError):
    default_code = ErrorCodes.UNEXPECTED_CONSTRUCTOR_ARGUMENTS


class UnknownFunction(ArgumentError):
    default_code = ErrorCodes.UNKNOWN_FUNCTION


# Submission errors

class SubmissionError(StarknetDevkitError):
    """The starknet CLI exited with a non-zero status"""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details, **kwargs)


class DeploymentRejected(SubmissionError):
    default_code = ErrorCodes.DEPLOYMENT_REJECTED


class InvocationFailed(SubmissionError):
    default_code = ErrorCodes.INVOCATION_FAILED


# Parse errors

class ParseError(StarknetDevkitError):
    """Text returned by the network or CLI could not be interpreted"""


class UnparsableSubmissionResult(ParseError):
    default_code = ErrorCodes.UNPARSABLE_SUBMISSION_RESULT


class StatusQueryFailed(ParseError):
    default_code = ErrorCodes.STATUS_QUERY_FAILED


class StatusParseError(ParseError):
    default_code = ErrorCodes.STATUS_PARSE_ERROR


class TruncatedOutput(ParseError):
    default_code = ErrorCodes.TRUNCATED_OUTPUT


class TrailingOutput(ParseError):
    default_code = ErrorCodes.TRAILING_OUTPUT


# Transaction lifecycle errors

class TransactionRejected(StarknetDevkitError):
    """The network rejected the transaction during validation"""

    default_code = ErrorCodes.TRANSACTION_REJECTED

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        contract_address: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", None) or {}
        if tx_hash is not None:
            details["tx_hash"] = tx_hash
        if contract_address is not None:
            details["contract_address"] = contract_address
        self.tx_hash = tx_hash
        self.contract_address = contract_address
        super().__init__(message, details=details, **kwargs)


class PollingError(StarknetDevkitError):
    """The status wait ended without reaching a terminal status"""

    def __init__(self, message: str, tx_hash: Optional[str] = None, attempts: Optional[int] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if tx_hash is not None:
            details["tx_hash"] = tx_hash
        if attempts is not None:
            details["attempts"] = attempts
        super().__init__(message, details=details, **kwargs)


class PollingTimeout(PollingError):
    default_code = ErrorCodes.POLLING_TIMEOUT


class PollingCancelled(PollingError):
    default_code = ErrorCodes.POLLING_CANCELLED
