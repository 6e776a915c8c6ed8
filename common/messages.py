# init / init_ok            (handshake: identity + membership)
# echo / echo_ok            (liveness probe)
# generate / generate_ok    (cluster-unique id)
# topology / topology_ok    (who gossips with whom)
# broadcast / broadcast_ok  (client adds a value)
# read / read_ok            (client reads the value set)
#
# gossip                    (node -> neighbor, one-way, no msg_id)

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from common.config import (
    INIT,
    INIT_OK,
    ECHO,
    ECHO_OK,
    GENERATE,
    GENERATE_OK,
    TOPOLOGY,
    TOPOLOGY_OK,
    BROADCAST,
    BROADCAST_OK,
    READ,
    READ_OK,
    GOSSIP,
)

# tag -> fields the body must carry
REQUIRED_FIELDS = {
    INIT: ("node_id", "node_ids"),
    INIT_OK: (),
    ECHO: ("echo",),
    ECHO_OK: ("echo",),
    GENERATE: (),
    GENERATE_OK: ("id",),
    TOPOLOGY: ("topology",),
    TOPOLOGY_OK: (),
    BROADCAST: ("message",),
    BROADCAST_OK: (),
    READ: (),
    READ_OK: ("messages",),
    GOSSIP: ("has_seen",),
}

REPLY_TYPES = {
    INIT: INIT_OK,
    ECHO: ECHO_OK,
    GENERATE: GENERATE_OK,
    TOPOLOGY: TOPOLOGY_OK,
    BROADCAST: BROADCAST_OK,
    READ: READ_OK,
}

OK_TYPES = frozenset(REPLY_TYPES.values())

_INT_SET_FIELDS = ("has_seen", "messages")
_HEADER = ("type", "msg_id", "in_reply_to")


class DecodeError(ValueError):
    """A line that is not a well-formed envelope."""


@dataclass
class Body:
    type: str
    msg_id: Optional[int] = None
    in_reply_to: Optional[int] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name):
        return self.fields[name]

    def get(self, name, default=None):
        return self.fields.get(name, default)


@dataclass
class Envelope:
    src: str
    dest: str
    body: Body

    @property
    def type(self) -> str:
        return self.body.type


def _is_int(v) -> bool:
    # bool is an int subclass, but true/false is not a value
    return isinstance(v, int) and not isinstance(v, bool)


def _is_str_list(v) -> bool:
    return isinstance(v, list) and all(isinstance(x, str) for x in v)


def _check_counter(name, v):
    if v is None:
        return None
    if not _is_int(v) or v < 0:
        raise DecodeError(f"{name} must be a non-negative integer, got {v!r}")
    return v


def _check_fields(tag: str, fields: Dict[str, Any]):
    for name in REQUIRED_FIELDS[tag]:
        if name not in fields:
            raise DecodeError(f"{tag}: missing field {name!r}")

    if tag == BROADCAST and not _is_int(fields["message"]):
        raise DecodeError(f"broadcast: message must be an integer, got {fields['message']!r}")

    if tag == INIT:
        if not isinstance(fields["node_id"], str):
            raise DecodeError("init: node_id must be a string")
        if not _is_str_list(fields["node_ids"]):
            raise DecodeError("init: node_ids must be a list of node ids")

    if tag == TOPOLOGY:
        topo = fields["topology"]
        if not isinstance(topo, dict) or not all(_is_str_list(v) for v in topo.values()):
            raise DecodeError("topology: expected an object of node id -> list of node ids")

    for name in _INT_SET_FIELDS:
        if name in REQUIRED_FIELDS[tag]:
            values = fields[name]
            if not isinstance(values, list) or not all(_is_int(v) for v in values):
                raise DecodeError(f"{tag}: {name} must be a list of integers")


def decode(line: str) -> Envelope:
    """Parse one wire line into an Envelope; raises DecodeError."""
    try:
        raw = json.loads(line)
    except json.JSONDecodeError as e:
        raise DecodeError(f"malformed JSON: {e}") from e

    if not isinstance(raw, dict):
        raise DecodeError("envelope must be a JSON object")

    for key in ("src", "dest", "body"):
        if key not in raw:
            raise DecodeError(f"envelope missing {key!r}")

    for key in ("src", "dest"):
        if not isinstance(raw[key], str):
            raise DecodeError(f"{key} must be a node id string, got {raw[key]!r}")

    body = raw["body"]
    if not isinstance(body, dict):
        raise DecodeError("body must be a JSON object")

    tag = body.get("type")
    if not isinstance(tag, str) or tag not in REQUIRED_FIELDS:
        raise DecodeError(f"unknown message type {tag!r}")

    fields = {k: v for k, v in body.items() if k not in _HEADER}
    _check_fields(tag, fields)

    return Envelope(
        src=raw["src"],
        dest=raw["dest"],
        body=Body(
            type=tag,
            msg_id=_check_counter("msg_id", body.get("msg_id")),
            in_reply_to=_check_counter("in_reply_to", body.get("in_reply_to")),
            fields=fields,
        ),
    )


def _wire_value(v):
    if isinstance(v, (set, frozenset)):
        return sorted(v)
    return v


def encode(env: Envelope) -> str:
    """Render an Envelope as one line of compact JSON (no trailing newline)."""
    body = {"type": env.body.type}
    if env.body.msg_id is not None:
        body["msg_id"] = env.body.msg_id
    if env.body.in_reply_to is not None:
        body["in_reply_to"] = env.body.in_reply_to
    for k, v in env.body.fields.items():
        body[k] = _wire_value(v)

    return json.dumps({"src": env.src, "dest": env.dest, "body": body}, separators=(",", ":"))
