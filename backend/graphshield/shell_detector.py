"""
shell_detector.py – Detect layered shell account chains.

Definition
----------
A shell node is a low-activity account: total (in + out) transaction count in
[SHELL_MIN_TX, SHELL_MAX_TX].  A layered chain is a directed path of at least
SHELL_MIN_HOPS accounts with at least one shell node strictly inside it.

Seeds
-----
Plausible origins only: accounts that are neither merchant nor payroll and
whose incoming count is 0 or above SHELL_MAX_TX (an account receiving from only
a couple of sources is itself a shell candidate, not an origin).

Algorithm
---------
Iterative DFS along outgoing neighbours (never revisiting a path node, never
passing through a merchant).  A neighbour is taken when it is a shell node, or
when the path is still too short to reach SHELL_MIN_HOPS.  Each taken path of
sufficient length is validated once (exact path string dedup).  Only shell
nodes are extended further, up to SHELL_MAX_HOPS hops.

Every valid chain is its own fraud ring.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Set, Tuple

from .config import (
    SHELL_MIN_HOPS,
    SHELL_MAX_TX,
    SHELL_MIN_TX,
    SHELL_MAX_HOPS,
    HIGH_VELOCITY_HOURS,
    SHELL_RING_BASE,
    SHELL_RING_LENGTH_BONUSES,
    SHELL_RING_VELOCITY_BONUS,
    SHELL_RING_MULTI_SHELL_BONUS,
)
from .graph_builder import TransactionGraph
from .ledger import KIND_LAYERED_SHELL, DetectionRun, PatternRef
from .records import FraudRing, LayeredShellChain
from .time_window import TimeWindowAnalyzer

log = logging.getLogger(__name__)


def shell_risk_score(chain: LayeredShellChain) -> float:
    score = SHELL_RING_BASE
    for minimum, bonus in SHELL_RING_LENGTH_BONUSES:
        if chain.length >= minimum:
            score += bonus
            break
    if chain.is_high_velocity:
        score += SHELL_RING_VELOCITY_BONUS
    if len(chain.shell_nodes) >= 2:
        score += SHELL_RING_MULTI_SHELL_BONUS
    return min(score, 100.0)


class LayeredShellDetector:
    def __init__(
        self,
        graph: TransactionGraph,
        run: DetectionRun,
        analyzer: Optional[TimeWindowAnalyzer] = None,
        min_hops: int = SHELL_MIN_HOPS,
        max_transactions: int = SHELL_MAX_TX,
        max_hops: int = SHELL_MAX_HOPS,
    ):
        self.graph = graph
        self.run = run
        self.analyzer = analyzer or TimeWindowAnalyzer()
        self.min_hops = min_hops
        self.max_transactions = max_transactions
        self.max_hops = max_hops

    def is_shell_node(self, account_id: str) -> bool:
        return SHELL_MIN_TX <= self.graph.total_transaction_count(account_id) <= self.max_transactions

    def _is_seed(self, account_id: str) -> bool:
        if self.graph.is_legitimate(account_id):
            return False
        stats = self.graph.account_stats(account_id)
        if stats is None:
            return False
        return stats.incoming_count == 0 or stats.incoming_count > self.max_transactions

    def detect(self) -> List[LayeredShellChain]:
        chains: List[LayeredShellChain] = []
        seen_paths: Set[str] = set()

        for seed in self.graph.all_accounts():
            if self._is_seed(seed):
                self._search_from(seed, seen_paths, chains)

        for chain in chains:
            self._record(chain)

        log.info("Shell detection: %d chains found", len(chains))
        return chains

    def _search_from(self, seed: str, seen_paths: Set[str], chains: List[LayeredShellChain]) -> None:
        # One frame per path with an iterator over its neighbours: a shell
        # neighbour is explored in full before its next sibling is looked at.
        stack = [((seed,), iter(self.graph.outgoing_neighbors(seed)))]
        while stack:
            path, neighbors = stack[-1]
            nbr = next(neighbors, None)
            if nbr is None:
                stack.pop()
                continue
            if nbr in path or self.graph.is_merchant(nbr):
                continue
            shell = self.is_shell_node(nbr)
            if not shell and len(path) < self.min_hops - 1:
                continue

            new_path = path + (nbr,)
            if len(new_path) >= self.min_hops:
                key = "->".join(new_path)
                if key not in seen_paths:
                    seen_paths.add(key)
                    chain = self._validate(new_path)
                    if chain is not None:
                        chains.append(chain)

            if shell and len(new_path) - 1 < self.max_hops:
                stack.append((new_path, iter(self.graph.outgoing_neighbors(nbr))))

    def _validate(self, path: Tuple[str, ...]) -> Optional[LayeredShellChain]:
        """Keep the chain only if an interior account is a shell node."""
        shell_nodes = tuple(acc for acc in path[1:-1] if self.is_shell_node(acc))
        if not shell_nodes:
            return None
        return LayeredShellChain(
            members=path,
            shell_nodes=shell_nodes,
            is_high_velocity=self._is_high_velocity(path),
        )

    def _is_high_velocity(self, path: Tuple[str, ...]) -> bool:
        hop_transactions = []
        for sender, receiver in zip(path, path[1:]):
            hop_transactions.extend(self.graph.edge_transactions(sender, receiver))
        return self.analyzer.is_high_velocity(hop_transactions, HIGH_VELOCITY_HOURS)

    def _record(self, chain: LayeredShellChain) -> FraudRing:
        ring_id = self.run.next_ring_id()
        ref = PatternRef(
            kind=KIND_LAYERED_SHELL,
            tag="layered_shell",
            ring_id=ring_id,
            high_velocity=chain.is_high_velocity,
        )
        for acc in chain.members:
            self.run.ledger.record(acc, ref)

        return self.run.add_ring(FraudRing(
            ring_id=ring_id,
            member_accounts=chain.members,
            pattern_type=KIND_LAYERED_SHELL,
            risk_score=shell_risk_score(chain),
            chain_length=chain.length,
            patterns=(chain,),
        ))
