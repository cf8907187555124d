"""
Wire encoders for the two branches.

- CAMEL: compact JSON object, UTF-8
- STRIMZI: XML document with one child element per field, UTF-8

Encoding is a pure function of (order, branch); field order follows
ORDER_FIELDS so output is byte-stable across calls.
"""

import json
import re
import xml.etree.ElementTree as ET
from collections.abc import Callable
from typing import Any

from src.orders.exceptions import EncodingError
from src.orders.models import ORDER_FIELDS, Order
from src.routing.router import Branch

XML_ROOT_TAG = "Order"

# Characters outside the XML 1.0 Char production
_XML_ILLEGAL = re.compile("[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")

Encoder = Callable[[Order], bytes]
Decoder = Callable[[bytes], Order]


def _validated_values(source: Any, getter: Callable[[Any, str], Any]) -> dict[str, Any]:
    """Collect wire fields from source, rejecting missing or mistyped values."""
    values: dict[str, Any] = {}
    for name, expected in ORDER_FIELDS:
        value = getter(source, name)
        if value is None:
            raise EncodingError(f"Missing field: {name}", field=name)
        # bool is an int subclass but never a valid id or amount
        if isinstance(value, bool) or not isinstance(value, expected):
            raise EncodingError(
                f"Field {name} must be {expected.__name__}, got {type(value).__name__}",
                field=name,
            )
        values[name] = value
    return values


def _order_values(order: Order) -> dict[str, Any]:
    return _validated_values(order, lambda obj, name: getattr(obj, name, None))


def encode_json(order: Order) -> bytes:
    """Serialize an order as a compact JSON object."""
    values = _order_values(order)
    try:
        return json.dumps(values, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(f"Order text is not valid Unicode: {e}") from e


def encode_xml(order: Order) -> bytes:
    """Serialize an order as an XML document."""
    values = _order_values(order)

    root = ET.Element(XML_ROOT_TAG)
    for name, value in values.items():
        text = str(value)
        illegal = _XML_ILLEGAL.search(text)
        if illegal:
            raise EncodingError(
                f"Field {name} contains a character XML cannot carry: {illegal.group()!r}",
                field=name,
            )
        ET.SubElement(root, name).text = text

    # Parsers normalize a raw CR to LF, so carry it as a character reference.
    # CR can only come from field text here.
    return ET.tostring(root, encoding="utf-8", xml_declaration=True).replace(b"\r", b"&#13;")


def decode_json(payload: bytes) -> Order:
    """Parse a JSON payload back into an order."""
    try:
        data = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise EncodingError(f"Invalid JSON payload: {e}") from e

    if not isinstance(data, dict):
        raise EncodingError("JSON payload is not an object")

    return Order.from_dict(_validated_values(data, lambda obj, name: obj.get(name)))


def decode_xml(payload: bytes) -> Order:
    """Parse an XML payload back into an order."""
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise EncodingError(f"Invalid XML payload: {e}") from e

    data: dict[str, Any] = {}
    for name, expected in ORDER_FIELDS:
        element = root.find(name)
        if element is None:
            continue
        text = element.text or ""
        if expected is int:
            try:
                data[name] = int(text)
            except ValueError as e:
                raise EncodingError(f"Field {name} is not an integer: {text!r}", field=name) from e
        else:
            data[name] = text

    return Order.from_dict(_validated_values(data, lambda obj, name: obj.get(name)))


ENCODERS: dict[Branch, Encoder] = {
    Branch.CAMEL: encode_json,
    Branch.STRIMZI: encode_xml,
}

DECODERS: dict[Branch, Decoder] = {
    Branch.CAMEL: decode_json,
    Branch.STRIMZI: decode_xml,
}


def encode(order: Order, branch: Branch) -> bytes:
    """Serialize an order in the format required by the branch."""
    return ENCODERS[branch](order)


def decode(payload: bytes, branch: Branch) -> Order:
    """Inverse of encode()."""
    return DECODERS[branch](payload)
