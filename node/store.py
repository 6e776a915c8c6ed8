from typing import FrozenSet, Iterable, Set


class ValueStore:
    """
    Every broadcast value this node has observed, directly or via gossip.

    Only grows: there is no remove, and snapshot() hands out an immutable
    copy so a caller can never shrink or alias the live set.
    """

    def __init__(self):
        self._values: Set[int] = set()

    def add(self, value: int) -> bool:
        """Insert one value. Returns True if it was new."""
        if value in self._values:
            return False
        self._values.add(value)
        return True

    def update(self, values: Iterable[int]) -> int:
        """Union values in. Returns how many were new."""
        before = len(self._values)
        self._values.update(values)
        return len(self._values) - before

    def snapshot(self) -> FrozenSet[int]:
        return frozenset(self._values)

    def __contains__(self, value) -> bool:
        return value in self._values

    def __len__(self) -> int:
        return len(self._values)
