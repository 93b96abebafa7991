# lqbook

Order types, listener interfaces for order book events, and a market depth
feed that carries trades and price levels from a publisher to subscribers
over TCP. Only the standard library is used.

## What is in the package

- `lqbook.types`: the type aliases (`Price`, `Quantity`, `Cost`, `ChangeId`,
  ...), the constants `MARKET_ORDER_PRICE`, `PRICE_UNCHANGED`,
  `QUANTITY_MAX` and `SIZE_UNCHANGED`, the `OrderCondition` flags
  (`NO_CONDITIONS`, `ALL_OR_NONE`, `IMMEDIATE_OR_CANCEL`, `FILL_OR_KILL`,
  `STOP`) and `Version` (2.0.0, `as_string()` gives `"2.0.0"`).
- `lqbook.order`: `Order`, the abstract interface of an order.
- `lqbook.listeners`: the abstract `Logger`, `OrderListener`,
  `TradeListener` and `OrderBookListener` callback interfaces.
- `lqbook.messages`: encoding and decoding of feed messages.
- `lqbook.connection`: the TCP publisher and subscriber connection.
- `lqbook.publisher`: `DepthFeedPublisher`, which turns trades and depth
  changes into messages.
- `lqbook.subscriber`: `DepthFeedSubscriber`, `DepthLevel` and
  `format_depth`, which rebuild and print the depth of each symbol.

## What it does not do

There is no order book or matching engine here. The interfaces in
`lqbook.order` and `lqbook.listeners` describe what such a book would take
and report, and `DepthFeedPublisher` expects to be handed a book object with
a `symbol` attribute and a depth tracker from elsewhere. The package has no
command-line program.

## Orders

Subclass `Order` and supply `is_buy()`, `price()` and `order_qty()`.
`stop_price()` defaults to 0, `all_or_none()` and `immediate_or_cancel()`
to `False`. `is_limit()` is true when the price is above zero; a price of 0
is a market order.

```python
from lqbook.order import Order


class MyOrder(Order):
    def __init__(self, buy, price, qty):
        self._buy = buy
        self._price = price
        self._qty = qty

    def is_buy(self):
        return self._buy

    def price(self):
        return self._price

    def order_qty(self):
        return self._qty


bid = MyOrder(True, 1251, 100)
bid.is_limit()     # True
bid.stop_price()   # 0
```

## Listeners

Subclass the listener you need. Every method is abstract except
`OrderListener.on_trigger_stop`, which does nothing by default.

```python
from lqbook.listeners import TradeListener


class TradeLog(TradeListener):
    def __init__(self):
        self.trades = []

    def on_trade(self, book, qty, price):
        self.trades.append((qty, price))
```

## Messages

A message is a dict of field names (`seq_num`, `msg_type`, `timestamp`,
`symbol`, `qty`, `cost`, `bids`, `asks`, and per level `level_num`,
`order_count`, `price`, `size`) to unsigned integers, strings or lists of
such dicts.

`encode_message(template_id, message)` produces one frame: a big-endian
header of the template id (2 bytes) and payload length (4 bytes), then the
fields as compact UTF-8 JSON. The `msg_type` field is set from the
template: `TemplateId.TRADE` (1) gives `MessageType.TRADE` (22),
`TemplateId.DEPTH` (2) gives `MessageType.DEPTH` (11).
`decode_message(data)` returns `(TemplateId, fields)`. Both raise
`MessageError` (a `ValueError`) for an unknown template id, a short or
mis-sized frame, or a payload that is not a JSON object.

## Connection

`DepthFeedConnection(argv)` reads its settings from command-line style
arguments, with `template_file_from_args`, `host_from_args` and
`port_from_args`:

- `-t FILE`: stored as `template_filename` (default `./templates/depth.xml`);
  it is not used for encoding
- `-h HOST`: the host to connect to (default `127.0.0.1`)
- `-p PORT`: the port (default `10003`); read like C `atoi`, so a
  non-number gives 0

Publishing side: `accept()` listens on all interfaces at the port and wraps
each accepted client in a `DepthFeedSession`. `send_trade`,
`send_incr_update` and `send_full_update` go to every connected session;
sessions no longer connected are dropped first. A session gets a full
update for a symbol only once, and incremental updates only for symbols it
has already had in full; `send_incr_update` on the connection returns
`False` if any session could not take the incremental update. Each session
stamps every message with its own next `seq_num`, starting at 1.

Subscribing side: `connect()` connects to the host and port, calls the
handler set with `set_reset_handler`, then passes each whole frame to the
handler set with `set_message_handler`. If the handler returns `False` or
the link fails, it closes and reconnects after `reconnect_delay` seconds
(3.0).

`connect()` and `accept()` start at once inside a running event loop;
otherwise they wait for `run()`, which runs the started work with
`asyncio.run` (and runs forever if nothing was started). `await close()`
stops everything. `listening` is an `asyncio.Event` set once the publisher
listens, and `server_port` gives the bound port.

## Publisher

`DepthFeedPublisher(connection=None, clock=time.time)`, or
`set_connection(...)` later. `on_trade(order_book, qty, cost)` sends a trade
message; `on_depth_change(order_book, tracker)` sends the levels changed
since `tracker.last_published_change` as an incremental update, and when
not every session could take it, the full depth to sessions new to the
symbol. Both raise `RuntimeError` without a connection. The tracker needs
`last_published_change`, `bids` and `asks`; each level needs `price`,
`order_count`, `aggregate_qty` and `changed_since(change_id)`.

## Subscriber

`DepthFeedSubscriber(precision=100)`. `handle_message(data)` decodes a
frame, checks that `seq_num` equals `expected_seq` (starting at 1), applies
depth messages to five bid and five ask `DepthLevel`s per symbol, and logs
trades. It returns `False` for an undecodable frame, a wrong sequence
number, a missing or invalid field, a level number of 5 or more, or an
unknown message type. `handle_reset()` sets the expected sequence back to
1. `depth(symbol)` returns the `(bids, asks)` levels held.

`format_depth(bids, asks, precision)` returns a two-column text table with
prices divided by `precision`, each side stopping at its first empty level.

## Running the tests

```
pip install -e .[test]
pytest
```