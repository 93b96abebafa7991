"""TCP connection for the depth feed: publisher sessions and a subscriber."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Coroutine, MutableMapping, Sequence

from .messages import MESSAGE_HEADER, SEQ_NUM, TemplateId, encode_message

_log = logging.getLogger(__name__)

DEFAULT_TEMPLATE_FILE = "./templates/depth.xml"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 10003

MessageHandler = Callable[[bytes], bool]
ResetHandler = Callable[[], None]

_ATOI = re.compile(r"\s*([+-]?\d+)")


def _value_after(argv: Sequence[str], flag: str) -> str | None:
    args = iter(argv)
    for arg in args:
        if arg == flag:
            return next(args, None)
    return None


def template_file_from_args(argv: Sequence[str]) -> str:
    """Return the argument following ``-t``, or the default template file."""
    value = _value_after(argv, "-t")
    return DEFAULT_TEMPLATE_FILE if value is None else value


def host_from_args(argv: Sequence[str]) -> str:
    """Return the argument following ``-h``, or the default host."""
    value = _value_after(argv, "-h")
    return DEFAULT_HOST if value is None else value


def port_from_args(argv: Sequence[str]) -> int:
    """Return the number following ``-p``, or the default port.

    The value is read like C ``atoi``: leading digits count, anything else is 0.
    """
    value = _value_after(argv, "-p")
    if value is None:
        return DEFAULT_PORT
    match = _ATOI.match(value)
    return int(match.group(1)) if match else 0


class DepthFeedSession:
    """Session between the publisher and one subscriber."""

    def __init__(self, writer: Any) -> None:
        self._writer = writer
        self._connected = False
        self._seq_num = 0
        self._sent_symbols: set[str] = set()

    @property
    def connected(self) -> bool:
        """Whether the session is connected."""
        return self._connected

    def set_connected(self) -> None:
        """Mark the session as connected."""
        self._connected = True

    def send_trade(self, message: MutableMapping[str, Any]) -> None:
        """Send a trade message."""
        self._set_sequence_num(message)
        _log.debug("sending trade message with %d fields", len(message))
        self._send(TemplateId.TRADE, message)

    def send_incr_update(self, symbol: str, message: MutableMapping[str, Any]) -> bool:
        """Send an incremental update if this client has had ``symbol``.

        Returns True when the update was sent.
        """
        if symbol not in self._sent_symbols:
            return False
        self._set_sequence_num(message)
        self._send(TemplateId.DEPTH, message)
        return True

    def send_full_update(self, symbol: str, message: MutableMapping[str, Any]) -> None:
        """Send a full update if this client has not yet had ``symbol``."""
        if symbol in self._sent_symbols:
            return
        self._sent_symbols.add(symbol)
        self._set_sequence_num(message)
        self._send(TemplateId.DEPTH, message)

    def _set_sequence_num(self, message: MutableMapping[str, Any]) -> None:
        self._seq_num += 1
        message[SEQ_NUM] = self._seq_num

    def _send(self, template: TemplateId, message: MutableMapping[str, Any]) -> None:
        data = encode_message(template, message)
        is_closing = getattr(self._writer, "is_closing", None)
        if is_closing is not None and is_closing():
            _log.info("session closed, not sending message")
            self._connected = False
            return
        try:
            self._writer.write(data)
        except (OSError, RuntimeError) as exc:
            _log.info("error %s sending message", exc)
            self._connected = False

    def _close(self) -> None:
        self._connected = False
        close = getattr(self._writer, "close", None)
        if close is not None:
            close()


async def _read_frame(reader: asyncio.StreamReader) -> bytes:
    header = await reader.readexactly(MESSAGE_HEADER.size)
    _, length = MESSAGE_HEADER.unpack(header)
    return header + await reader.readexactly(length)


class DepthFeedConnection:
    """Publishes to accepted subscribers, or subscribes to a publisher."""

    reconnect_delay = 3.0

    def __init__(self, argv: Sequence[str]) -> None:
        self.template_filename = template_file_from_args(argv)
        self.host = host_from_args(argv)
        self.port = port_from_args(argv)
        self._msg_handler: MessageHandler = lambda data: True
        self._reset_handler: ResetHandler = lambda: None
        self._sessions: list[DepthFeedSession] = []
        self._pending: list[Callable[[], Coroutine[Any, Any, None]]] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._server: asyncio.AbstractServer | None = None
        self._accepting = False
        self.listening = asyncio.Event()

    @property
    def sessions(self) -> tuple[DepthFeedSession, ...]:
        """The sessions currently held."""
        return tuple(self._sessions)

    @property
    def server_port(self) -> int:
        """The port the publisher is listening on."""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("connection is not listening")
        return self._server.sockets[0].getsockname()[1]

    def set_message_handler(self, handler: MessageHandler) -> None:
        """Set the callback for each received frame; returning False drops the link."""
        self._msg_handler = handler

    def set_reset_handler(self, handler: ResetHandler) -> None:
        """Set the callback run after each (re)connection to the publisher."""
        self._reset_handler = handler

    def add_session(self, session: DepthFeedSession) -> None:
        """Hold a newly accepted session and mark it connected."""
        self._sessions.append(session)
        session.set_connected()

    def _live_sessions(self):
        live = [s for s in self._sessions if s.connected]
        self._sessions[:] = live
        return live

    def send_trade(self, message: MutableMapping[str, Any]) -> None:
        """Send a trade message on every connected session."""
        for session in self._live_sessions():
            session.send_trade(message)

    def send_incr_update(self, symbol: str, message: MutableMapping[str, Any]) -> bool:
        """Send an incremental update on every connected session.

        Returns True if every session could take the incremental update.
        """
        none_new = True
        for session in self._live_sessions():
            if not session.send_incr_update(symbol, message):
                none_new = False
        return none_new

    def send_full_update(self, symbol: str, message: MutableMapping[str, Any]) -> None:
        """Send a full update to sessions that have not yet had ``symbol``."""
        for session in self._live_sessions():
            session.send_full_update(symbol, message)

    def connect(self) -> None:
        """Connect to the publisher, reconnecting whenever the link drops."""
        self._start(self._client_loop)

    def accept(self) -> None:
        """Accept connections from subscribers."""
        if self._accepting:
            return
        self._accepting = True
        self._start(self._server_loop)

    def run(self) -> None:
        """Run the started work until it ends; with no work, run forever."""
        asyncio.run(self._run_pending())

    async def close(self) -> None:
        """Stop all work, the listener and every session."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self._accepting = False
        self.listening.clear()
        for session in self._sessions:
            session._close()
        self._sessions.clear()

    def _start(self, factory: Callable[[], Coroutine[Any, Any, None]]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._pending.append(factory)
            return
        task = loop.create_task(factory())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_pending(self) -> None:
        factories, self._pending = self._pending, []
        tasks = [asyncio.create_task(factory()) for factory in factories]
        self._tasks.update(tasks)
        if tasks:
            await asyncio.gather(*tasks)
        else:
            await asyncio.Event().wait()

    async def _server_loop(self) -> None:
        self._server = await asyncio.start_server(self._on_accept, "0.0.0.0", self.port)
        self.listening.set()
        await self._server.serve_forever()

    async def _on_accept(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        _log.info("accepted client connection")
        session = DepthFeedSession(writer)
        self.add_session(session)
        try:
            while await reader.read(1024):
                pass
        except OSError:
            pass
        finally:
            session._close()

    async def _client_loop(self) -> None:
        while True:
            _log.info("connecting to feed")
            try:
                reader, writer = await asyncio.open_connection(self.host, self.port)
            except OSError as exc:
                _log.info("on_connect, error=%s", exc)
                await asyncio.sleep(self.reconnect_delay)
                continue
            _log.info("connected to feed")
            try:
                self._reset_handler()
                while self._msg_handler(await _read_frame(reader)):
                    pass
            except (OSError, EOFError) as exc:
                _log.info("error %s receiving message", exc)
            finally:
                writer.close()
            await asyncio.sleep(self.reconnect_delay)