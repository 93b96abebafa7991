"""Wire format for depth feed messages.

A message is a mapping of field names to unsigned integers, strings or
sequences of such mappings. On the wire each message is one frame: a header
holding the template id and the payload length, followed by the payload as
compact UTF-8 JSON.
"""

from __future__ import annotations

import enum
import json
import struct
from typing import Any, Mapping

SEQ_NUM = "seq_num"
MSG_TYPE = "msg_type"
TIMESTAMP = "timestamp"
SYMBOL = "symbol"
QTY = "qty"
COST = "cost"
BIDS = "bids"
ASKS = "asks"
LEVEL_NUM = "level_num"
ORDER_COUNT = "order_count"
PRICE = "price"
SIZE = "size"

MESSAGE_HEADER = struct.Struct(">HI")


class TemplateId(enum.IntEnum):
    """Templates a message may be encoded with."""

    TRADE = 1
    DEPTH = 2


class MessageType(enum.IntEnum):
    """Message type constant carried by every message of a template."""

    DEPTH = 11
    TRADE = 22


_TEMPLATE_MESSAGE_TYPES = {
    TemplateId.TRADE: MessageType.TRADE,
    TemplateId.DEPTH: MessageType.DEPTH,
}


class MessageError(ValueError):
    """Raised when a message cannot be encoded or decoded."""


def _template(template_id: int) -> TemplateId:
    try:
        return TemplateId(template_id)
    except ValueError:
        raise MessageError(f"unknown template id {template_id}") from None


def encode_message(template_id: int, message: Mapping[str, Any]) -> bytes:
    """Encode ``message`` with the given template into one frame.

    The template's message type is written into the ``msg_type`` field.
    """
    template = _template(template_id)
    fields = dict(message)
    fields[MSG_TYPE] = int(_TEMPLATE_MESSAGE_TYPES[template])
    try:
        payload = json.dumps(fields, separators=(",", ":"), sort_keys=True).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise MessageError(f"cannot encode message: {exc}") from exc
    return MESSAGE_HEADER.pack(int(template), len(payload)) + payload


def decode_message(data: bytes) -> tuple[TemplateId, dict[str, Any]]:
    """Decode one whole frame into its template id and fields."""
    data = bytes(data)
    if len(data) < MESSAGE_HEADER.size:
        raise MessageError("message shorter than its header")
    raw_id, length = MESSAGE_HEADER.unpack_from(data)
    template = _template(raw_id)
    payload = data[MESSAGE_HEADER.size:]
    if len(payload) != length:
        raise MessageError(
            f"payload length {len(payload)} does not match header length {length}"
        )
    try:
        fields = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MessageError(f"cannot decode message: {exc}") from exc
    if not isinstance(fields, dict):
        raise MessageError("message payload is not a field set")
    return template, fields