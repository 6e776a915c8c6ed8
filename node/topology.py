from typing import Dict, Iterable, List, Optional


class TopologyTable:
    def __init__(self):
        # node_id -> neighbor ids, in the order the topology message listed them
        self._neighbors: Dict[str, List[str]] = {}

    def replace(self, topology: Dict[str, Iterable[str]]):
        """Swap in a whole new table (last topology message wins)."""
        self._neighbors = {
            node_id: list(dict.fromkeys(neighbors))
            for node_id, neighbors in topology.items()
        }

    def neighbors_of(self, node_id: Optional[str]) -> List[str]:
        """Neighbors of node_id, never including node_id itself."""
        if node_id is None:
            return []
        return [n for n in self._neighbors.get(node_id, []) if n != node_id]

    def __len__(self) -> int:
        return len(self._neighbors)
