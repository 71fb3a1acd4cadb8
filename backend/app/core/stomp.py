"""Minimal STOMP 1.2 frame codec shared by the WebSocket endpoint and client.

Only the text subset needed for a per-user notification queue is supported:
CONNECT/STOMP, CONNECTED, SUBSCRIBE, UNSUBSCRIBE, MESSAGE, RECEIPT, ERROR and
DISCONNECT. Frames travel one per WebSocket text message.
"""

from __future__ import annotations

from dataclasses import dataclass, field

NULL = "\x00"
SUBPROTOCOLS = ["v12.stomp", "v11.stomp", "v10.stomp"]
USER_QUEUE = "/user/queue/notifications"

_ESCAPES = [("\\", "\\\\"), ("\r", "\\r"), ("\n", "\\n"), (":", "\\c")]


class StompProtocolError(ValueError):
    """Raised when a text message is not a well-formed STOMP frame."""


@dataclass
class Frame:
    command: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


def _escape(value: str) -> str:
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def _unescape(value: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            nxt = value[i + 1]
            out.append({"\\": "\\", "r": "\r", "n": "\n", "c": ":"}.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def encode(frame: Frame) -> str:
    lines = [frame.command]
    headers = dict(frame.headers)
    if frame.body and "content-length" not in headers:
        headers["content-length"] = str(len(frame.body.encode("utf-8")))
    for key, value in headers.items():
        lines.append(f"{_escape(key)}:{_escape(str(value))}")
    return "\n".join(lines) + "\n\n" + frame.body + NULL


def decode(text: str) -> Frame | None:
    """Decode one frame. Returns None for a heart-beat (bare EOL)."""
    if not text.strip("\r\n" + NULL):
        return None
    text = text.lstrip("\r\n")
    head, sep, rest = text.partition("\n\n")
    if not sep:
        head, sep, rest = text.partition("\r\n\r\n")
    if not sep:
        raise StompProtocolError("Missing header terminator")

    lines = head.replace("\r\n", "\n").split("\n")
    command = lines[0].strip()
    if not command:
        raise StompProtocolError("Missing command")

    headers: dict[str, str] = {}
    for line in lines[1:]:
        key, colon, value = line.partition(":")
        if not colon:
            raise StompProtocolError(f"Malformed header line: {line!r}")
        # Repeated headers: first occurrence wins
        headers.setdefault(_unescape(key), _unescape(value))

    body, nul, _ = rest.partition(NULL)
    if not nul:
        raise StompProtocolError("Frame is not NULL-terminated")
    return Frame(command=command, headers=headers, body=body)


def connect_frame(host: str, token: str | None = None) -> Frame:
    headers = {"accept-version": "1.2,1.1,1.0", "host": host, "heart-beat": "0,0"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return Frame("CONNECT", headers)


def connected_frame() -> Frame:
    return Frame("CONNECTED", {"version": "1.2", "heart-beat": "0,0"})


def subscribe_frame(subscription_id: str, destination: str, receipt: str | None = None) -> Frame:
    headers = {"id": subscription_id, "destination": destination, "ack": "auto"}
    if receipt:
        headers["receipt"] = receipt
    return Frame("SUBSCRIBE", headers)


def message_frame(subscription_id: str, message_id: str, destination: str, body: str) -> Frame:
    return Frame(
        "MESSAGE",
        {
            "subscription": subscription_id,
            "message-id": message_id,
            "destination": destination,
            "content-type": "application/json",
        },
        body,
    )


def receipt_frame(receipt_id: str) -> Frame:
    return Frame("RECEIPT", {"receipt-id": receipt_id})


def error_frame(message: str) -> Frame:
    return Frame("ERROR", {"message": message})
