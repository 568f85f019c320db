"""
Vote Tally

Sparse aggregate of bucket counts keyed by (delegate, bucket type index),
each cell holding a {locked, unlocked} pair. Every count change in the
system goes through this class.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Tuple

from ..exceptions import TallyConsistencyError
from .registry import BucketTypeRegistry
from .types import BucketState, VoteCounts


@dataclass
class TallyCell:
    """Locked / unlocked bucket counts of one (delegate, type index)."""
    locked: int = 0
    unlocked: int = 0

    def get(self, state: BucketState) -> int:
        return self.locked if state is BucketState.LOCKED else self.unlocked

    def add(self, state: BucketState, delta: int) -> int:
        if state is BucketState.LOCKED:
            self.locked += delta
            return self.locked
        self.unlocked += delta
        return self.unlocked

    @property
    def empty(self) -> bool:
        return self.locked == 0 and self.unlocked == 0


def _require_staked(state: BucketState) -> None:
    if not state.is_staked:
        raise ValueError(f"Unstaked buckets are not tallied (got {state})")


class VoteTally:
    """
    Per-delegate vote tally.

    Query rows are sized to the registry's current type count, so a type
    registered after a bucket was counted still shows up as a zero column.
    """

    def __init__(self, registry: BucketTypeRegistry):
        self._registry = registry
        self._cells: Dict[Tuple[str, int], TallyCell] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[Tuple[Tuple[str, int], TallyCell]]:
        return iter(list(self._cells.items()))

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def increment(self, delegate: str, type_index: int, state: BucketState, count: int = 1) -> None:
        _require_staked(state)
        cell = self._cells.get((delegate, type_index))
        if cell is None:
            cell = self._cells[(delegate, type_index)] = TallyCell()
        cell.add(state, count)

    def decrement(self, delegate: str, type_index: int, state: BucketState, count: int = 1) -> None:
        _require_staked(state)
        key = (delegate, type_index)
        cell = self._cells.get(key)
        if cell is None or cell.get(state) < count:
            raise TallyConsistencyError(delegate, type_index, state.value)
        cell.add(state, -count)
        if cell.empty:
            del self._cells[key]

    remove = decrement

    def move(
        self,
        delegate: str,
        from_index: int,
        from_state: BucketState,
        to_index: int,
        to_state: BucketState,
        to_delegate: str = None,
    ) -> None:
        """Move one bucket between cells (state change, re-type, re-delegation)."""
        self.decrement(delegate, from_index, from_state)
        self.increment(to_delegate or delegate, to_index, to_state)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def count(self, delegate: str, type_index: int, state: BucketState) -> int:
        cell = self._cells.get((delegate, type_index))
        return cell.get(state) if cell else 0

    def query(self, delegates: Iterable[str]) -> List[VoteCounts]:
        """Counts per delegate, one column per registered bucket type."""
        width = len(self._registry)
        rows = []
        for delegate in delegates:
            row = VoteCounts(delegate=delegate, locked=[0] * width, unlocked=[0] * width)
            for index in range(width):
                cell = self._cells.get((delegate, index))
                if cell:
                    row.locked[index] = cell.locked
                    row.unlocked[index] = cell.unlocked
            rows.append(row)
        return rows

    def total(self, state: BucketState) -> int:
        return sum(cell.get(state) for cell in self._cells.values())

    def delegates(self) -> List[str]:
        return sorted({delegate for delegate, _ in self._cells})
