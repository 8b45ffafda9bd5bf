"""JSON-RPC framing over byte streams.

One reader thread unframes inbound messages onto `Connection.receiver`, one
writer thread frames whatever is put on `Connection.sender`. Neither thread
runs handler code; the dispatch loop consumes the receiver queue alone.
"""

from __future__ import annotations

import json
import queue
import sys
import threading
from dataclasses import dataclass
from typing import BinaryIO

import structlog

from blamels.json_types import JSONObject
from blamels.message_state import Envelope, Notification, Request, Response, ResponseError

logger = structlog.get_logger(__name__)

_CLOSED = object()


class TransportError(RuntimeError):
    pass


class MalformedMessage(TransportError):
    """A fully framed body that does not decode; the stream is still in sync."""


def read_message(stream: BinaryIO) -> JSONObject | None:
    """Read one framed message; `None` when the stream ends between messages."""
    header = b""
    while b"\r\n\r\n" not in header:
        chunk = stream.read(1)
        if not chunk:
            if header.strip():
                raise TransportError("stream closed inside message header")
            return None
        header += chunk
    head, _, _ = header.partition(b"\r\n\r\n")
    length = 0
    for line in head.split(b"\r\n"):
        if line.lower().startswith(b"content-length:"):
            try:
                length = int(line.split(b":", 1)[1].strip())
            except ValueError:
                raise TransportError(f"invalid Content-Length header: {line!r}") from None
            break
    if length <= 0:
        raise TransportError("missing or invalid Content-Length")
    body = bytearray()
    while len(body) < length:
        chunk = stream.read(length - len(body))
        if not chunk:
            raise TransportError("stream closed inside message body")
        body.extend(chunk)
    try:
        message = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedMessage("message body is not valid JSON") from exc
    if not isinstance(message, dict):
        raise MalformedMessage("message payload is not a JSON object")
    return message


def write_message(stream: BinaryIO, message: JSONObject) -> None:
    payload = json.dumps(message).encode("utf-8")
    header = f"Content-Length: {len(payload)}\r\n\r\n".encode("utf-8")
    stream.write(header + payload)
    stream.flush()


def decode_envelope(message: JSONObject) -> Envelope:
    method = message.get("method")
    if isinstance(method, str):
        if "id" in message:
            return Request(id=message["id"], method=method, params=message.get("params"))
        return Notification(method=method, params=message.get("params"))
    if "id" in message:
        raw_error = message.get("error")
        error = None
        if isinstance(raw_error, dict):
            error = ResponseError(
                code=int(raw_error.get("code", 0)),
                message=str(raw_error.get("message", "")),
                data=raw_error.get("data"),
            )
        return Response(id=message["id"], result=message.get("result"), error=error)
    raise TransportError(f"message is neither request, notification nor response: {message!r}")


def encode_envelope(envelope: Envelope) -> JSONObject:
    message: JSONObject = {"jsonrpc": "2.0"}
    if isinstance(envelope, Request):
        message.update(id=envelope.id, method=envelope.method)
        if envelope.params is not None:
            message["params"] = envelope.params
    elif isinstance(envelope, Notification):
        message["method"] = envelope.method
        if envelope.params is not None:
            message["params"] = envelope.params
    else:
        message["id"] = envelope.id
        if envelope.error is not None:
            error: JSONObject = {"code": envelope.error.code, "message": envelope.error.message}
            if envelope.error.data is not None:
                error["data"] = envelope.error.data
            message["error"] = error
        else:
            message["result"] = envelope.result
    return message


@dataclass
class IoThreads:
    reader: threading.Thread
    writer: threading.Thread

    def join(self, timeout: float | None = None) -> None:
        # The reader is a daemon and may stay blocked on a stream the client
        # never closes, so only the writer is waited for.
        self.writer.join(timeout)


class Connection:
    def __init__(self) -> None:
        self.receiver: queue.Queue = queue.Queue()
        self.sender: queue.Queue = queue.Queue()

    def receive(self) -> Envelope | None:
        """Next inbound envelope, or `None` once the input stream is closed."""
        item = self.receiver.get()
        if item is _CLOSED:
            return None
        return item

    def send(self, envelope: Envelope) -> None:
        self.sender.put(envelope)

    def close(self) -> None:
        """Stop the writer thread after it drains pending messages."""
        self.sender.put(_CLOSED)

    @classmethod
    def streams(cls, reader: BinaryIO, writer: BinaryIO) -> tuple[Connection, IoThreads]:
        connection = cls()
        threads = IoThreads(
            reader=threading.Thread(
                target=connection._read_loop, args=(reader,), name="blamels-reader", daemon=True
            ),
            writer=threading.Thread(
                target=connection._write_loop, args=(writer,), name="blamels-writer", daemon=True
            ),
        )
        threads.reader.start()
        threads.writer.start()
        return connection, threads

    @classmethod
    def stdio(cls) -> tuple[Connection, IoThreads]:
        return cls.streams(sys.stdin.buffer, sys.stdout.buffer)

    def _read_loop(self, stream: BinaryIO) -> None:
        try:
            while True:
                try:
                    message = read_message(stream)
                except MalformedMessage as exc:
                    logger.warning("dropping undecodable message", error=str(exc))
                    continue
                except TransportError as exc:
                    logger.error("failed to read message", error=str(exc))
                    return
                if message is None:
                    return
                try:
                    envelope = decode_envelope(message)
                except TransportError as exc:
                    logger.warning("dropping malformed message", error=str(exc))
                    continue
                self.receiver.put(envelope)
        finally:
            self.receiver.put(_CLOSED)

    def _write_loop(self, stream: BinaryIO) -> None:
        while True:
            item = self.sender.get()
            if item is _CLOSED:
                return
            try:
                write_message(stream, encode_envelope(item))
            except (OSError, ValueError) as exc:
                logger.error("failed to write message", error=str(exc))
                return
