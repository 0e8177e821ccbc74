"""
scoring.py – Suspicion scoring engine.

Scoring model
-------------
Additive weights (config.SCORE_WEIGHTS) per account:
  cycle_involvement      +40  any cycle_length_N tag
  smurfing_*             +30 / +30 / +15, exactly one, in the order
                               aggregator > distributor > participant
  layered_shell          +20
  high_velocity          +10

False-positive reductions (config.SCORE_REDUCTIONS):
  merchant_account           -30  graph.is_merchant
  payroll_account            -30  graph.is_payroll_account
  high_volume_low_variance   -20  > 500 tx, not a merchant, CV of every
                                  incident amount < 0.2

final_score = clamp(raw - reductions, 0, 100).  Accounts whose final score is
0 are treated as cleared and left out of suspicious_accounts.

Ring risk is recomputed after scoring as avg * 0.4 + max * 0.6 of the member
final scores, replacing each detector's provisional value.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from .config import (
    SCORE_WEIGHTS,
    SCORE_REDUCTIONS,
    HIGH_VOLUME_TX_COUNT,
    HIGH_VOLUME_CV_THRESHOLD,
    RING_AVG_WEIGHT,
    RING_MAX_WEIGHT,
)
from .graph_builder import TransactionGraph, coefficient_of_variation
from .ledger import DetectionRun
from .records import FraudRing, ScoredAccount

log = logging.getLogger(__name__)

_SMURFING_PRIORITY = ("smurfing_aggregator", "smurfing_distributor", "smurfing_participant")


def clamp_score(score: float) -> float:
    return max(0.0, min(100.0, score))


class ScoringEngine:
    def __init__(self, graph: TransactionGraph, run: DetectionRun):
        self.graph = graph
        self.run = run

    # ── Per-account ────────────────────────────────────────────────────────────

    def _factors(self, patterns: List[str]) -> List[Dict]:
        applied: List[str] = []
        if any(p.startswith("cycle_length_") for p in patterns):
            applied.append("cycle_involvement")
        smurf = next((p for p in _SMURFING_PRIORITY if p in patterns), None)
        if smurf:
            applied.append(smurf)
        if "layered_shell" in patterns:
            applied.append("layered_shell")
        if "high_velocity" in patterns:
            applied.append("high_velocity")
        return [{"factor": f, "points": SCORE_WEIGHTS[f]} for f in applied]

    def amount_variation(self, account_id: str) -> float:
        """CV of every amount the account sent or received; 1.0 when undefined."""
        neighbors = self.graph.neighbors(account_id)
        amounts = [e.amount for e in neighbors.outgoing] + [e.amount for e in neighbors.incoming]
        if len(amounts) < 2:
            return 1.0
        cv = coefficient_of_variation(amounts)
        return 1.0 if cv is None else cv

    def reductions(self, account_id: str) -> List[Dict]:
        applied: List[str] = []
        merchant = self.graph.is_merchant(account_id)
        if merchant:
            applied.append("merchant_account")
        if self.graph.is_payroll_account(account_id):
            applied.append("payroll_account")
        if (
            self.graph.total_transaction_count(account_id) > HIGH_VOLUME_TX_COUNT
            and not merchant
            and self.amount_variation(account_id) < HIGH_VOLUME_CV_THRESHOLD
        ):
            applied.append("high_volume_low_variance")
        return [{"factor": f, "reduction": SCORE_REDUCTIONS[f]} for f in applied]

    def score_account(self, account_id: str) -> ScoredAccount:
        patterns = self.run.ledger.patterns(account_id)
        factors = self._factors(patterns)
        reductions = self.reductions(account_id)

        raw = sum(f["points"] for f in factors)
        total_reduction = sum(r["reduction"] for r in reductions)

        return ScoredAccount(
            account_id=account_id,
            raw_score=raw,
            final_score=clamp_score(raw - total_reduction),
            factors=factors,
            reductions=reductions,
            detected_patterns=patterns,
            ring_id=self.run.ledger.ring_id(account_id),
        )

    def score_all_accounts(self) -> List[ScoredAccount]:
        """Every ledger account with a positive final score, highest first."""
        scored = [self.score_account(acc) for acc in self.run.ledger.accounts()]
        flagged = [s for s in scored if s.final_score > 0]
        flagged.sort(key=lambda s: s.final_score, reverse=True)
        log.info(
            "Scoring complete: %d accounts scored, %d flagged",
            len(scored), len(flagged),
        )
        return flagged

    # ── Rings ──────────────────────────────────────────────────────────────────

    @staticmethod
    def ring_risk(member_scores: List[float]) -> float:
        avg = sum(member_scores) / len(member_scores)
        return round(avg * RING_AVG_WEIGHT + max(member_scores) * RING_MAX_WEIGHT, 1)

    def calculate_ring_risk_scores(self) -> List[FraudRing]:
        for ring in self.run.rings:
            scores = [self.score_account(acc).final_score for acc in ring.member_accounts]
            if scores:
                ring.risk_score = self.ring_risk(scores)
        return self.run.rings

    # ── Report ─────────────────────────────────────────────────────────────────

    def generate_output(self, processing_time_seconds: float) -> Dict:
        scored = self.score_all_accounts()
        rings = self.calculate_ring_risk_scores()

        suspicious_accounts = [
            {
                "account_id":        s.account_id,
                "suspicion_score":   round(s.final_score, 1),
                "detected_patterns": s.detected_patterns,
                "ring_id":           s.ring_id,
            }
            for s in scored
        ]
        fraud_rings = [ring.as_dict() for ring in rings]

        summary = {
            "total_accounts_analyzed":     len(self.graph.all_accounts()),
            "suspicious_accounts_flagged": len(suspicious_accounts),
            "fraud_rings_detected":        len(fraud_rings),
            "processing_time_seconds":     round(processing_time_seconds, 2),
        }
        return {
            "suspicious_accounts": suspicious_accounts,
            "fraud_rings":         fraud_rings,
            "summary":             summary,
        }

    def detailed_analysis(self) -> List[Dict]:
        """Scoring breakdown for every flagged account."""
        details = []
        for s in self.score_all_accounts():
            stats = self.graph.account_stats(s.account_id)
            details.append({
                "account_id":        s.account_id,
                "suspicion_score":   s.final_score,
                "raw_score":         s.raw_score,
                "scoring_factors":   s.factors,
                "score_reductions":  s.reductions,
                "detected_patterns": s.detected_patterns,
                "ring_id":           s.ring_id,
                "account_stats":     stats.as_dict() if stats else None,
                "is_merchant":       self.graph.is_merchant(s.account_id),
                "is_payroll":        self.graph.is_payroll_account(s.account_id),
            })
        return details
