import re
from typing import Any

from eth_utils import is_0x_prefixed, is_hex, to_int

from .exceptions import UnparsableSubmissionResult

# CLI flag names rewritten into the devkit's own vocabulary, applied in order
LOG_REPLACEMENTS = (
    ("--network", "--starknet-network"),
    ("gateway_url", "gateway-url"),
    ("--account_contract", "--account-contract"),
    ("--contract", "contract"),
)

TRACEBACK_SEPARATOR = ".\nTraceback"


def hex_to_int(value: Any) -> int:
    """Convert a decimal or 0x-prefixed hexadecimal value to an integer"""
    if isinstance(value, str):
        text = value.strip()
        negative = text.startswith("-")
        if negative:
            text = text[1:]
        if is_0x_prefixed(text) and is_hex(text):
            number = to_int(hexstr=text)
        else:
            number = int(text, 10)
        return -number if negative else number
    return int(value)


def is_numeric(value: Any) -> bool:
    """True for integers and for strings holding a decimal or hex integer"""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, str):
        try:
            hex_to_int(value)
        except ValueError:
            return False
        return True
    return False


def to_numeric_string(value: Any) -> str:
    """Normalize a numeric input to the decimal text the CLI expects"""
    return str(hex_to_int(value))


def adapt_log(message: str) -> str:
    """Rewrite a starknet CLI diagnostic for display to devkit users"""
    for old, new in LOG_REPLACEMENTS:
        message = message.replace(old, new)
    # The CLI prints the error once more inside the traceback
    message = message.split(TRACEBACK_SEPARATOR)[0]
    return message.replace("\\n", "\n")


def extract_from_response(response: str, pattern: str) -> str:
    """Return the first group of a line-anchored match in CLI output"""
    matched = re.search(pattern, response, re.MULTILINE)
    if not matched or not matched.group(1):
        raise UnparsableSubmissionResult(
            "Could not parse response. Check that you're using the correct network.",
            details={"pattern": pattern, "response": response}
        )
    return matched.group(1).strip()


def extract_tx_hash(response: str) -> str:
    return extract_from_response(response, r"^Transaction hash: (.*)$")


def extract_address(response: str) -> str:
    return extract_from_response(response, r"^Contract address: (.*)$")
