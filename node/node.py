import sys
import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from common.config import (
    INIT,
    ECHO,
    GENERATE,
    TOPOLOGY,
    BROADCAST,
    READ,
    GOSSIP,
    GOSSIP_INTERVAL,
    GOSSIP_REDUNDANCY,
)
from common.log import log
from common.messages import OK_TYPES, REPLY_TYPES, Body, DecodeError, Envelope
from common.syslog import LOG_ERROR, LOG_INFO, LOG_WARN
from node.gossip import GossipManager
from node.loop import EventLoop
from node.store import ValueStore
from node.topology import TopologyTable
from node.tracker import SeenTracker


class ProtocolError(RuntimeError):
    """The harness asked for something this node cannot do in its current state."""


@dataclass(frozen=True)
class NodeIdentity:
    node_id: str
    node_ids: Tuple[str, ...]


class Node:
    def __init__(self, redundancy=GOSSIP_REDUNDANCY, rng=None):
        self.identity: Optional[NodeIdentity] = None

        self.values = ValueStore()
        self.topology = TopologyTable()
        self.seen = SeenTracker()

        self.gossip = GossipManager(self, redundancy=redundancy, rng=rng)

        self._msg_id = 0

    @property
    def node_id(self) -> Optional[str]:
        return self.identity.node_id if self.identity else None

    @property
    def node_ids(self) -> Tuple[str, ...]:
        return self.identity.node_ids if self.identity else ()

    def next_msg_id(self) -> int:
        self._msg_id += 1
        return self._msg_id

    def reply(self, request: Envelope, **fields) -> Envelope:
        """Answer request: swapped src/dest, fresh msg_id, in_reply_to = its msg_id."""
        return Envelope(
            src=request.dest,
            dest=request.src,
            body=Body(
                type=REPLY_TYPES[request.type],
                msg_id=self.next_msg_id(),
                in_reply_to=request.body.msg_id,
                fields=fields,
            ),
        )

    def generate_id(self) -> str:
        if self.identity is None:
            raise ProtocolError("generate received before init")
        # uuid1 is time-ordered and never repeats within a process;
        # the node id prefix keeps two nodes from ever colliding
        return f"{self.node_id}-{uuid.uuid1().hex}"

    def handle_message(self, msg: Envelope) -> List[Envelope]:
        msg_type = msg.type

        if msg_type == INIT:
            self.on_init(msg)
            return [self.reply(msg)]

        elif msg_type == ECHO:
            return [self.reply(msg, echo=msg.body["echo"])]

        elif msg_type == GENERATE:
            return [self.reply(msg, id=self.generate_id())]

        elif msg_type == TOPOLOGY:
            self.topology.replace(msg.body["topology"])
            log(
                "node",
                self.node_id,
                "TOPOLOGY",
                nodes=len(self.topology),
                neighbors=self.topology.neighbors_of(self.node_id),
            )
            LOG_INFO(
                "TOPOLOGY",
                node_id=self.node_id,
                event="TOPOLOGY",
                msg_id=msg.body.msg_id,
                neighbors=self.topology.neighbors_of(self.node_id),
            )
            return [self.reply(msg)]

        elif msg_type == BROADCAST:
            self.values.add(msg.body["message"])
            return [self.reply(msg)]

        elif msg_type == READ:
            return [self.reply(msg, messages=self.values.snapshot())]

        elif msg_type == GOSSIP:
            has_seen = msg.body["has_seen"]
            self.values.update(has_seen)
            self.seen.record(msg.src, has_seen)
            return []

        elif msg_type in OK_TYPES:
            # only seen when this node acts as a client; nothing to do yet
            return []

        # decode() only lets known tags through
        raise ProtocolError(f"no handler for message type {msg_type!r}")

    def on_init(self, msg: Envelope):
        if self.identity is not None:
            log(
                "node",
                self.node_id,
                "INIT_DUPLICATE",
                level="WARN",
                ignored=msg.body["node_id"],
            )
            LOG_WARN(
                "INIT_DUPLICATE",
                node_id=self.node_id,
                event="INIT_DUPLICATE",
                msg_id=msg.body.msg_id,
                ignored=msg.body["node_id"],
            )
            return

        self.identity = NodeIdentity(
            node_id=msg.body["node_id"],
            node_ids=tuple(msg.body["node_ids"]),
        )
        log("node", self.node_id, "INIT", level="OK", members=self.node_ids)
        LOG_INFO(
            "INIT",
            node_id=self.node_id,
            event="INIT",
            msg_id=msg.body.msg_id,
            members=self.node_ids,
        )


def main():
    node = Node()
    loop = EventLoop(node, sys.stdin, sys.stdout, interval=GOSSIP_INTERVAL)

    log(
        "node",
        None,
        "NODE_START",
        interval=GOSSIP_INTERVAL,
        redundancy=GOSSIP_REDUNDANCY,
    )

    try:
        loop.run()
    except (DecodeError, ProtocolError, OSError, UnicodeDecodeError) as e:
        log("node", node.node_id, "FATAL", level="ERROR", error=type(e).__name__, reason=e)
        LOG_ERROR(
            "FATAL",
            node_id=node.node_id,
            event="FATAL",
            error=type(e).__name__,
            reason=str(e),
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
