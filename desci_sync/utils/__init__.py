from .hex_utils import parse_int, to_hex_quantity, to_hex_bytes, normalize_address

__all__ = ['parse_int', 'to_hex_quantity', 'to_hex_bytes', 'normalize_address']
