import math
import random
from typing import FrozenSet, List

from common.config import GOSSIP, GOSSIP_REDUNDANCY
from common.log import log
from common.messages import Body, Envelope


def sample_size(acked_count: int, redundancy: float) -> int:
    # round half up: 2 acked at 0.25 resends 1, not 0
    return int(math.floor(acked_count * redundancy + 0.5))


class GossipManager:
    def __init__(self, node, redundancy=GOSSIP_REDUNDANCY, rng=None):
        """
        node must provide:
          - node.node_id     (None until init)
          - node.values      (ValueStore)
          - node.topology    (TopologyTable)
          - node.seen        (SeenTracker)
        """
        if not 0.0 <= redundancy <= 1.0:
            raise ValueError(f"redundancy must be within [0, 1], got {redundancy}")

        self.node = node
        self.redundancy = redundancy
        self.rng = rng or random.Random()

        self.ticks = 0
        self.sent = 0

    def neighbors(self) -> List[str]:
        return self.node.topology.neighbors_of(self.node.node_id)

    def select_for_neighbor(self, neighbor_id: str) -> FrozenSet[int]:
        """
        Values to push to neighbor_id this round: everything it has not
        reported holding, plus a random share of what it has.
        """
        values = self.node.values.snapshot()
        seen = self.node.seen.seen(neighbor_id)

        acked = values & seen
        unacked = values - seen

        k = sample_size(len(acked), self.redundancy)
        if k == 0:
            return unacked

        # sorted so a seeded rng draws the same sample every run
        resend = self.rng.sample(sorted(acked), k)
        return unacked | frozenset(resend)

    def tick(self) -> List[Envelope]:
        """One gossip round: at most one envelope per neighbor."""
        self.ticks += 1

        if self.node.node_id is None:
            return []

        out = []
        for neighbor_id in self.neighbors():
            has_seen = self.select_for_neighbor(neighbor_id)

            # an empty push tells the neighbor nothing
            if not has_seen:
                continue

            out.append(
                Envelope(
                    src=self.node.node_id,
                    dest=neighbor_id,
                    body=Body(type=GOSSIP, fields={"has_seen": has_seen}),
                )
            )
            log(
                "node",
                self.node.node_id,
                "GOSSIP_SEND",
                level="DEBUG",
                dest=neighbor_id,
                count=len(has_seen),
                tick=self.ticks,
            )

        self.sent += len(out)
        return out
