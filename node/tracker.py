from typing import Dict, FrozenSet, Iterable


class SeenTracker:
    """
    neighbor_id -> values that neighbor said it holds in its latest gossip.

    record() replaces the entry instead of merging into it, so the tracker
    mirrors the neighbor's last self-report. The redundancy resend in
    GossipManager covers the gaps this leaves when a gossip is lost.
    """

    def __init__(self):
        self._seen: Dict[str, FrozenSet[int]] = {}

    def record(self, neighbor_id: str, has_seen: Iterable[int]):
        self._seen[neighbor_id] = frozenset(has_seen)

    def seen(self, neighbor_id: str) -> FrozenSet[int]:
        """Empty for a neighbor that never gossiped to us."""
        return self._seen.get(neighbor_id, frozenset())
