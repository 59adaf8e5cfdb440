"""
JSON-Cadence helpers.

Argument and result values are flow_py_sdk.cadence types. This module holds
the conversions around them: address normalization, command line arguments
and decoding of raw JSON-Cadence bytes.
"""

import json
from typing import Any, Union

from flow_py_sdk import cadence
from flow_py_sdk.exceptions import PySDKError


def normalize_address(address: str) -> str:
    """Strip an optional 0x prefix and left-pad to the 8 byte Flow address width."""
    address = address.lower()
    if address.startswith("0x"):
        address = address[2:]
    if len(address) > 16:
        raise ValueError(f"Invalid Flow address: {address}")
    bytes.fromhex(address.zfill(16))
    return address.zfill(16)


def address(value: str) -> cadence.Address:
    """Cadence Address value for a hex address, with or without 0x."""
    return cadence.Address.from_hex(normalize_address(value))


def decode_value(raw: Union[str, bytes]) -> Any:
    """Decode a JSON-Cadence document into flow_py_sdk.cadence values."""
    return json.loads(raw, object_hook=cadence.cadence_object_hook)


def parse_argument(text: str) -> cadence.Value:
    """
    Parse a JSON-Cadence document, e.g. '{"type": "String", "value": "hi"}'.

    Raises:
        ValueError: If the text is not a JSON object holding a Cadence value
    """
    document = json.loads(text)
    if not isinstance(document, dict):
        raise ValueError(f"Not a JSON-Cadence value: {text}")

    try:
        value = decode_value(text)
    except (KeyError, TypeError, AttributeError, PySDKError) as e:
        raise ValueError(f"Malformed JSON-Cadence value {text}: {e}") from e

    if not isinstance(value, cadence.Value):
        raise ValueError(f"Not a JSON-Cadence value: {text}")
    return value
