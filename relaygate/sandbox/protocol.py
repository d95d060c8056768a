"""Sandbox IPC protocol: message format and validation.

Host and worker exchange one JSON object per line over the worker's
stdin/stdout. Every message has an ``op`` field. Bytes travel as base64
strings.

Host -> worker:
    load      program source, filename, staged changes, sandbox options
    file      answer to a read_file request (``data`` is base64 or null)

Worker -> host:
    read_file ask the host for a file at the new revision
    log       console output from the program
    verdict   final ``ok``/``message``
    error     the program failed; ``message`` describes why
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import IO, Any

LOAD = "load"
FILE = "file"
READ_FILE = "read_file"
LOG = "log"
VERDICT = "verdict"
ERROR = "error"

HOST_OPS = frozenset({LOAD, FILE})
WORKER_OPS = frozenset({READ_FILE, LOG, VERDICT, ERROR})


class ProtocolError(Exception):
    """A peer sent something that is not a valid protocol message."""


def encode_bytes(data: bytes | None) -> str | None:
    if data is None:
        return None
    return base64.b64encode(data).decode("ascii")


def decode_bytes(text: str | None) -> bytes | None:
    if text is None:
        return None
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ProtocolError(f"invalid base64 payload: {exc}") from exc


def encode_message(message: dict[str, Any]) -> bytes:
    return json.dumps(message, ensure_ascii=True, separators=(",", ":")).encode("ascii") + b"\n"


def decode_message(line: bytes, allowed_ops: frozenset[str]) -> dict[str, Any]:
    """Parse one line and check its ``op``.

    Raises ProtocolError if the line is not a JSON object or names an
    operation the receiving side does not accept.
    """
    try:
        message = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ProtocolError(f"malformed message: {exc}") from exc

    if not isinstance(message, dict):
        raise ProtocolError("message is not a JSON object")

    op = message.get("op")
    if op not in allowed_ops:
        raise ProtocolError(f"unexpected message op {op!r}")
    return message


class Channel:
    """One side of the line-delimited JSON channel."""

    def __init__(self, reader: IO[bytes], writer: IO[bytes], accepts: frozenset[str]):
        self.reader = reader
        self.writer = writer
        self.accepts = accepts

    def send(self, message: dict[str, Any]) -> None:
        self.writer.write(encode_message(message))
        self.writer.flush()

    def receive(self) -> dict[str, Any] | None:
        """Next message, or None once the peer has closed the channel."""
        line = self.reader.readline()
        if not line:
            return None
        return decode_message(line, self.accepts)
