"""
cycle_detector.py – Detect circular fund routing (money-mule rings).

Strategy
--------
Bounded depth-first search from every account that is neither a merchant nor
a payroll account, following deduplicated outgoing neighbours.  A path that
leads back to its start with CYCLE_MIN_LEN..CYCLE_MAX_LEN distinct accounts is
a cycle.  Merchants are never walked through: a payment processor in the
middle of a loop breaks its laundering semantics.

Canonical deduplication: [A,B,C] and [B,C,A] are the same loop; we rotate to
the lexicographically smallest account first and join with "->".

Ring grouping
-------------
Every cycle found in one run lands in a single fraud ring.  Provisional risk:
70 base, +15 if any 3-cycle is present, +10 if more than 3 cycles, capped at
100.  The scoring pass replaces it later.
"""
from __future__ import annotations

import logging
from typing import List, Set, Tuple

from .config import (
    CYCLE_MIN_LEN,
    CYCLE_MAX_LEN,
    CYCLE_RING_BASE,
    CYCLE_RING_TRIANGLE_BONUS,
    CYCLE_RING_MANY_BONUS,
    CYCLE_RING_MANY_COUNT,
)
from .graph_builder import TransactionGraph
from .ledger import KIND_CYCLE, DetectionRun, PatternRef
from .records import CyclePattern, FraudRing

log = logging.getLogger(__name__)


def canonical_cycle(cycle: Tuple[str, ...]) -> str:
    """Rotate so the smallest account is first and join into a dedup key."""
    if not cycle:
        return ""
    min_idx = cycle.index(min(cycle))
    rotated = cycle[min_idx:] + cycle[:min_idx]
    return "->".join(rotated)


def cycle_risk_score(cycles: List[CyclePattern]) -> float:
    score = CYCLE_RING_BASE
    if any(c.length == 3 for c in cycles):
        score += CYCLE_RING_TRIANGLE_BONUS
    if len(cycles) > CYCLE_RING_MANY_COUNT:
        score += CYCLE_RING_MANY_BONUS
    return min(score, 100.0)


class CycleDetector:
    def __init__(
        self,
        graph: TransactionGraph,
        run: DetectionRun,
        min_length: int = CYCLE_MIN_LEN,
        max_length: int = CYCLE_MAX_LEN,
    ):
        self.graph = graph
        self.run = run
        self.min_length = min_length
        self.max_length = max_length

    def detect(self) -> List[CyclePattern]:
        """
        Find all simple cycles within the length bounds and record them.

        Returns the cycles in discovery order; an empty list (and no ring) when
        there are none.
        """
        cycles: List[CyclePattern] = []
        seen: Set[str] = set()

        for start in self.graph.all_accounts():
            if self.graph.is_legitimate(start):
                continue
            self._search_from(start, seen, cycles)

        if cycles:
            self._record(cycles)

        log.info("Cycle detection: %d cycles found", len(cycles))
        return cycles

    def _search_from(self, start: str, seen: Set[str], cycles: List[CyclePattern]) -> None:
        # Each frame owns its path tuple and an iterator over its neighbours,
        # so a neighbour's subtree is exhausted before the next sibling.
        stack = [((start,), iter(self.graph.outgoing_neighbors(start)))]
        while stack:
            path, neighbors = stack[-1]
            nbr = next(neighbors, None)
            if nbr is None:
                stack.pop()
                continue
            if nbr == start and self.min_length <= len(path) <= self.max_length:
                key = canonical_cycle(path)
                if key not in seen:
                    seen.add(key)
                    cycles.append(CyclePattern(members=path))
                continue
            if nbr in path or len(path) >= self.max_length:
                continue
            if self.graph.is_merchant(nbr):
                continue
            stack.append((path + (nbr,), iter(self.graph.outgoing_neighbors(nbr))))

    def _record(self, cycles: List[CyclePattern]) -> FraudRing:
        ring_id = self.run.next_ring_id()
        members = list(dict.fromkeys(acc for c in cycles for acc in c.members))

        for cycle in cycles:
            ref = PatternRef(kind=KIND_CYCLE, tag=f"cycle_length_{cycle.length}", ring_id=ring_id)
            for acc in cycle.members:
                self.run.ledger.record(acc, ref)

        return self.run.add_ring(FraudRing(
            ring_id=ring_id,
            member_accounts=tuple(members),
            pattern_type=KIND_CYCLE,
            risk_score=cycle_risk_score(cycles),
            patterns=tuple(cycles),
        ))
