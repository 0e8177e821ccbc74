"""
smurf_detector.py – Detect smurfing patterns (fan-in / fan-out).

Smurfing (structuring)
-----------------------
  Fan-in  : FAN_THRESHOLD+ unique senders → 1 aggregator within the window.
  Fan-out : 1 distributor → FAN_THRESHOLD+ unique receivers within the window.

Algorithm (per account that is neither merchant nor payroll)
------------------------------------------------------------
1. Cheap pre-filter: at least FAN_THRESHOLD raw incoming (fan-in) or outgoing
   (fan-out) transactions.
2. Sliding-window analysis over those transactions (SMURF_WINDOW_HOURS).
3. Count *unique* counterparties inside the densest window; emit a pattern only
   if that count still meets FAN_THRESHOLD.

Every pattern becomes its own fraud ring: central account + counterparties.
Fan-in rings are numbered before fan-out rings.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .config import (
    FAN_THRESHOLD,
    SMURF_WINDOW_HOURS,
    SMURF_RING_BASE,
    SMURF_RING_SIZE_BONUSES,
    SMURF_RING_LARGE_AMOUNT,
    SMURF_RING_LARGE_AMOUNT_BONUS,
)
from .graph_builder import TransactionGraph
from .ledger import KIND_SMURFING, DetectionRun, PatternRef
from .records import FanInPattern, FanOutPattern, FraudRing, TimeWindowBounds, TransactionEdge
from .time_window import TimeWindowAnalyzer

log = logging.getLogger(__name__)

FAN_IN = "fan_in"
FAN_OUT = "fan_out"


def smurfing_risk_score(pattern) -> float:
    score = SMURF_RING_BASE
    for minimum, bonus in SMURF_RING_SIZE_BONUSES:
        if pattern.unique_counterparties >= minimum:
            score += bonus
            break
    if pattern.total_amount > SMURF_RING_LARGE_AMOUNT:
        score += SMURF_RING_LARGE_AMOUNT_BONUS
    return min(score, 100.0)


class SmurfingDetector:
    def __init__(
        self,
        graph: TransactionGraph,
        run: DetectionRun,
        analyzer: Optional[TimeWindowAnalyzer] = None,
        min_connections: int = FAN_THRESHOLD,
        window_hours: float = SMURF_WINDOW_HOURS,
    ):
        self.graph = graph
        self.run = run
        self.analyzer = analyzer or TimeWindowAnalyzer(window_hours)
        self.min_connections = min_connections
        self.window_hours = window_hours

    def detect(self) -> Dict[str, list]:
        """
        Returns
        -------
        {"fan_in": [FanInPattern, ...], "fan_out": [FanOutPattern, ...]}
        """
        fan_in: List[FanInPattern] = []
        fan_out: List[FanOutPattern] = []

        for account in self.graph.all_accounts():
            if self.graph.is_legitimate(account):
                continue
            pattern = self.detect_fan_in(account)
            if pattern:
                fan_in.append(pattern)
            pattern = self.detect_fan_out(account)
            if pattern:
                fan_out.append(pattern)

        for pattern in fan_in:
            self._record(pattern, FAN_IN, "smurfing_aggregator")
        for pattern in fan_out:
            self._record(pattern, FAN_OUT, "smurfing_distributor")

        log.info(
            "Smurfing detection: %d fan-in + %d fan-out rings",
            len(fan_in), len(fan_out),
        )
        return {FAN_IN: fan_in, FAN_OUT: fan_out}

    def _densest_window(self, edges: Sequence[TransactionEdge]):
        if len(edges) < self.min_connections:
            return None
        analysis = self.analyzer.sliding_window_analysis(edges, self.window_hours)
        window = analysis.max_window
        if window is None:
            return None
        counterparties = tuple(dict.fromkeys(e.counterparty for e in window.items))
        if len(counterparties) < self.min_connections:
            return None
        return window, counterparties

    def detect_fan_in(self, account_id: str) -> Optional[FanInPattern]:
        found = self._densest_window(self.graph.neighbors(account_id).incoming)
        if found is None:
            return None
        window, senders = found
        return FanInPattern(
            aggregator=account_id,
            senders=senders,
            transaction_count=len(window.items),
            time_window=TimeWindowBounds(window.start, window.end),
            total_amount=sum(e.amount for e in window.items),
        )

    def detect_fan_out(self, account_id: str) -> Optional[FanOutPattern]:
        found = self._densest_window(self.graph.neighbors(account_id).outgoing)
        if found is None:
            return None
        window, receivers = found
        return FanOutPattern(
            distributor=account_id,
            receivers=receivers,
            transaction_count=len(window.items),
            time_window=TimeWindowBounds(window.start, window.end),
            total_amount=sum(e.amount for e in window.items),
        )

    def _record(self, pattern, smurfing_type: str, central_tag: str) -> FraudRing:
        ring_id = self.run.next_ring_id()
        ledger = self.run.ledger

        ledger.record(pattern.central_account,
                      PatternRef(kind=KIND_SMURFING, tag=central_tag, ring_id=ring_id))
        participant = PatternRef(kind=KIND_SMURFING, tag="smurfing_participant", ring_id=ring_id)
        for acc in pattern.counterparties:
            ledger.record(acc, participant)

        return self.run.add_ring(FraudRing(
            ring_id=ring_id,
            member_accounts=pattern.members,
            pattern_type=KIND_SMURFING,
            risk_score=smurfing_risk_score(pattern),
            smurfing_type=smurfing_type,
            patterns=(pattern,),
        ))
