import json

import pytest

from lqbook.messages import (
    ASKS,
    BIDS,
    MESSAGE_HEADER,
    MSG_TYPE,
    MessageError,
    MessageType,
    TemplateId,
    decode_message,
    encode_message,
)


def test_template_and_message_type_values():
    assert TemplateId(1) is TemplateId.TRADE
    assert TemplateId(2) is TemplateId.DEPTH
    assert MessageType(11) is MessageType.DEPTH
    assert MessageType(22) is MessageType.TRADE


def test_trade_round_trip_sets_message_type():
    message = {"symbol": "AAPL", "qty": 100, "cost": 325000, "seq_num": 1}
    template, fields = decode_message(encode_message(TemplateId.TRADE, message))
    assert template is TemplateId.TRADE
    assert fields[MSG_TYPE] == MessageType.TRADE
    assert {k: v for k, v in fields.items() if k != MSG_TYPE} == message


def test_depth_round_trip_with_sequences():
    message = {
        "symbol": "IBM",
        BIDS: [{"level_num": 0, "order_count": 2, "price": 1250, "size": 300}],
        ASKS: [],
    }
    template, fields = decode_message(encode_message(TemplateId.DEPTH, message))
    assert template is TemplateId.DEPTH
    assert fields[MSG_TYPE] == MessageType.DEPTH
    assert fields[BIDS] == message[BIDS]
    assert fields[ASKS] == []


def test_encode_does_not_modify_input():
    message = {"symbol": "X"}
    encode_message(TemplateId.TRADE, message)
    assert message == {"symbol": "X"}


def test_frame_layout():
    frame = encode_message(TemplateId.TRADE, {})
    payload = frame[MESSAGE_HEADER.size:]
    assert MESSAGE_HEADER.unpack(frame[: MESSAGE_HEADER.size]) == (1, len(payload))
    assert json.loads(payload) == {"msg_type": 22}


def test_unknown_template_on_encode():
    with pytest.raises(MessageError):
        encode_message(7, {})


def test_unencodable_value():
    with pytest.raises(MessageError):
        encode_message(TemplateId.TRADE, {"symbol": object()})


def test_truncated_header():
    with pytest.raises(MessageError):
        decode_message(b"\x00")


def test_length_mismatch():
    frame = encode_message(TemplateId.DEPTH, {"symbol": "X"})
    with pytest.raises(MessageError):
        decode_message(frame[:-1])


def test_unknown_template_on_decode():
    payload = b"{}"
    with pytest.raises(MessageError):
        decode_message(MESSAGE_HEADER.pack(9, len(payload)) + payload)


def test_payload_not_an_object():
    payload = b"[1]"
    with pytest.raises(MessageError):
        decode_message(MESSAGE_HEADER.pack(1, len(payload)) + payload)


def test_payload_not_json():
    payload = b"{nope"
    with pytest.raises(MessageError):
        decode_message(MESSAGE_HEADER.pack(1, len(payload)) + payload)