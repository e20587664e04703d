"""
Hex / quantity helpers for JSON-RPC payloads
"""
from typing import Any

from eth_utils import is_address, to_checksum_address


def parse_int(value: Any) -> int:
    """Parse a JSON-RPC quantity ("0x1a"), a decimal string, or an int"""
    if isinstance(value, bool):
        raise ValueError(f"not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if value.startswith(("0x", "0X")):
            return int(value, 16)
        return int(value)
    raise ValueError(f"not a quantity: {value!r}")


def to_hex_quantity(value: int) -> str:
    """Encode an int as a JSON-RPC quantity"""
    if value < 0:
        raise ValueError("quantity must be non-negative")
    return hex(value)


def to_hex_bytes(value: Any) -> str:
    """0x-prefixed lowercase hex for bytes or an already-hex string"""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        text = value.lower()
        return text if text.startswith("0x") else "0x" + text
    raise ValueError(f"cannot render {type(value).__name__} as hex")


def normalize_address(address: str) -> str:
    """EIP-55 checksum form; raises ValueError on malformed input"""
    if not is_address(address):
        raise ValueError(f"invalid address: {address!r}")
    return to_checksum_address(address)
