import json

from lqbook.connection import DepthFeedConnection, DepthFeedSession
from lqbook.messages import MESSAGE_HEADER, TemplateId, encode_message
from lqbook.publisher import DepthFeedPublisher
from lqbook.subscriber import (
    DEPTH_LEVELS,
    DepthFeedSubscriber,
    DepthLevel,
    format_depth,
)

HEADER = "----------BID----------    ----------ASK----------\n"


def level(num, price, count, size):
    return {"level_num": num, "price": price, "order_count": count, "size": size}


def depth_frame(seq, symbol="ABC", bids=(), asks=()):
    return encode_message(
        TemplateId.DEPTH,
        {
            "seq_num": seq,
            "timestamp": 100,
            "symbol": symbol,
            "bids": list(bids),
            "asks": list(asks),
        },
    )


def trade_frame(seq, qty=100, cost=325000):
    return encode_message(
        TemplateId.TRADE,
        {"seq_num": seq, "timestamp": 100, "symbol": "ABC", "qty": qty, "cost": cost},
    )


def test_depth_message_updates_levels():
    sub = DepthFeedSubscriber()
    frame = depth_frame(1, bids=[level(0, 1250, 2, 300)], asks=[level(1, 1252, 1, 100)])
    assert sub.handle_message(frame) is True
    bids, asks = sub.depth("ABC")
    assert len(bids) == DEPTH_LEVELS and len(asks) == DEPTH_LEVELS
    assert (bids[0].price, bids[0].aggregate_qty, bids[0].order_count) == (1250, 300, 2)
    assert (asks[1].price, asks[1].aggregate_qty, asks[1].order_count) == (1252, 100, 1)
    assert asks[0].order_count == 0
    assert sub.expected_seq == 2


def test_sequence_gap_is_rejected():
    sub = DepthFeedSubscriber()
    assert sub.handle_message(trade_frame(2)) is False
    assert sub.expected_seq == 1


def test_reset_restarts_sequence():
    sub = DepthFeedSubscriber()
    assert sub.handle_message(trade_frame(1)) is True
    assert sub.handle_message(trade_frame(1)) is False
    sub.handle_reset()
    assert sub.handle_message(trade_frame(1)) is True


def test_trade_with_zero_qty_is_handled():
    sub = DepthFeedSubscriber()
    assert sub.handle_message(trade_frame(1, qty=0, cost=0)) is True


def test_missing_fields_fail():
    sub = DepthFeedSubscriber()
    frame = encode_message(TemplateId.TRADE, {"seq_num": 1, "symbol": "ABC"})
    assert sub.handle_message(frame) is False
    no_cost = encode_message(
        TemplateId.TRADE, {"seq_num": 1, "timestamp": 1, "symbol": "ABC", "qty": 1}
    )
    assert sub.handle_message(no_cost) is False


def test_unknown_message_type_fails():
    payload = json.dumps(
        {"seq_num": 1, "msg_type": 99, "timestamp": 1, "symbol": "ABC"}
    ).encode()
    frame = MESSAGE_HEADER.pack(1, len(payload)) + payload
    sub = DepthFeedSubscriber()
    assert sub.handle_message(frame) is False
    assert sub.expected_seq == 1


def test_garbage_fails():
    assert DepthFeedSubscriber().handle_message(b"\x00") is False


def test_level_out_of_range_fails():
    sub = DepthFeedSubscriber()
    frame = depth_frame(1, bids=[level(DEPTH_LEVELS, 1250, 1, 100)])
    assert sub.handle_message(frame) is False


def test_incomplete_level_fails():
    sub = DepthFeedSubscriber()
    frame = depth_frame(1, asks=[{"level_num": 0, "price": 1}])
    assert sub.handle_message(frame) is False


def test_level_changed_since():
    lv = DepthLevel(last_change=5)
    assert lv.changed_since(4) is True
    assert lv.changed_since(5) is False


def test_format_empty_depth():
    empty = [DepthLevel() for _ in range(DEPTH_LEVELS)]
    assert format_depth(empty, empty, 100) == HEADER + " " * 23 + "\n"


def test_format_depth_lines_are_aligned():
    bids = [DepthLevel(1250, 300, 2), DepthLevel(1249, 100, 1), DepthLevel()]
    asks = [DepthLevel(1251, 200, 1), DepthLevel()]
    text = format_depth(bids, asks, 100)
    lines = text.split("\n")
    assert lines[0] + "\n" == HEADER
    assert "12.50" in lines[1]
    assert all(len(line) == len(lines[1]) for line in lines[1:2])
    assert lines[2].startswith(format_depth([bids[1]], [], 100).split("\n")[1])
    assert len(lines[1]) == len(HEADER) - 1


def test_publisher_to_subscriber_round_trip():
    class Writer:
        def __init__(self):
            self.frames = []

        def write(self, data):
            self.frames.append(bytes(data))

    class Book:
        symbol = "XYZ"

    class Tracker:
        last_published_change = 0
        bids = [DepthLevel(1250, 300, 2, 1), DepthLevel(1249, 100, 1, 1)]
        asks = [DepthLevel(1251, 200, 1, 1)]

    connection = DepthFeedConnection([])
    writer = Writer()
    connection.add_session(DepthFeedSession(writer))
    publisher = DepthFeedPublisher(connection, clock=lambda: 5)
    publisher.on_depth_change(Book(), Tracker())
    publisher.on_trade(Book(), 100, 125000)

    sub = DepthFeedSubscriber()
    assert [sub.handle_message(frame) for frame in writer.frames] == [True, True]
    bids, asks = sub.depth("XYZ")
    assert [(b.price, b.aggregate_qty, b.order_count) for b in bids[:2]] == [
        (1250, 300, 2),
        (1249, 100, 1),
    ]
    assert (asks[0].price, asks[0].aggregate_qty) == (1251, 200)