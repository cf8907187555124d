"""
Order routing and wire encoding.

Router picks one of two branches from the order item; each branch
has its own encoder and destination topic.
"""

from .encoders import (
    DECODERS,
    ENCODERS,
    decode,
    decode_json,
    decode_xml,
    encode,
    encode_json,
    encode_xml,
)
from .router import Branch, route

__all__ = [
    # Router
    "Branch",
    "route",
    # Encoders
    "ENCODERS",
    "DECODERS",
    "encode",
    "decode",
    "encode_json",
    "encode_xml",
    "decode_json",
    "decode_xml",
]
