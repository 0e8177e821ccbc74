"""
Tests for fan-in / fan-out smurfing detection.
"""
from datetime import datetime, timedelta

from graphshield.graph_builder import TransactionGraph
from graphshield.ledger import DetectionRun
from graphshield.records import FanInPattern, TimeWindowBounds, Transaction
from graphshield.smurf_detector import FAN_IN, FAN_OUT, SmurfingDetector, smurfing_risk_score

BASE = datetime(2024, 1, 1, 10, 0, 0)


def _tx(tx_id, sender, receiver, amount=500.0, hours=0.0):
    return Transaction(tx_id, sender, receiver, amount, BASE + timedelta(hours=hours))


def _fan_in(aggregator="AGG", senders=12, span_hours=10.0, amount=500.0, prefix="IN"):
    step = span_hours / max(senders - 1, 1)
    return [
        _tx(f"{prefix}{i}", f"{prefix}_S{i:02d}", aggregator, amount, i * step)
        for i in range(senders)
    ]


def _fan_out(distributor="DIST", receivers=20, span_hours=20.0, amounts=(2000.0, 10000.0), prefix="OUT"):
    step = span_hours / max(receivers - 1, 1)
    return [
        _tx(f"{prefix}{i}", distributor, f"{prefix}_R{i:02d}", amounts[i % len(amounts)], i * step)
        for i in range(receivers)
    ]


def _detect(transactions):
    graph = TransactionGraph()
    graph.build(transactions)
    run = DetectionRun()
    result = SmurfingDetector(graph, run).detect()
    return result, run


class TestFanIn:
    def test_twelve_senders_within_window(self):
        result, run = _detect(_fan_in())
        assert len(result[FAN_IN]) == 1
        assert result[FAN_OUT] == []
        pattern = result[FAN_IN][0]
        assert pattern.aggregator == "AGG"
        assert pattern.unique_counterparties == 12
        assert pattern.transaction_count == 12
        assert pattern.total_amount == 6000.0

        ring = run.rings[0]
        assert ring.pattern_type == "smurfing"
        assert ring.smurfing_type == FAN_IN
        assert ring.member_accounts[0] == "AGG"
        assert len(ring.member_accounts) == 13
        # 60 base + 10 for ten or more counterparties
        assert ring.risk_score == 70.0

    def test_ledger_tags(self):
        _, run = _detect(_fan_in())
        assert run.ledger.patterns("AGG") == ["smurfing_aggregator"]
        assert run.ledger.patterns("IN_S00") == ["smurfing_participant"]
        assert run.ledger.ring_id("IN_S05") == "RING_001"

    def test_below_threshold(self):
        result, run = _detect(_fan_in(senders=9))
        assert result[FAN_IN] == []
        assert run.rings == []

    def test_spread_beyond_window(self):
        result, _ = _detect(_fan_in(senders=12, span_hours=12 * 24 * 10))
        assert result[FAN_IN] == []

    def test_repeat_senders_counted_once(self):
        txs = [_tx(f"R{i}", f"S{i % 5}", "AGG", 100.0, i) for i in range(15)]
        result, _ = _detect(txs)
        assert result[FAN_IN] == []


class TestFanOut:
    def test_twenty_receivers(self):
        result, run = _detect(_fan_out())
        assert len(result[FAN_OUT]) == 1
        pattern = result[FAN_OUT][0]
        assert pattern.distributor == "DIST"
        assert pattern.unique_counterparties == 20
        assert pattern.total_amount == 120000.0

        ring = run.rings[0]
        assert ring.smurfing_type == FAN_OUT
        # 60 base + 20 for twenty counterparties + 10 for a total above 100k
        assert ring.risk_score == 90.0
        assert run.ledger.patterns("DIST") == ["smurfing_distributor"]
        assert run.ledger.patterns("OUT_R03") == ["smurfing_participant"]

    def test_payroll_distributor_skipped(self):
        txs = _fan_out(distributor="PAYROLL", receivers=25, span_hours=1.0, amounts=(3000.0,))
        result, run = _detect(txs)
        assert result[FAN_OUT] == []
        assert run.rings == []


class TestRingOrdering:
    def test_fan_in_rings_numbered_first(self):
        txs = _fan_out(receivers=10, amounts=(100.0, 900.0)) + _fan_in(senders=10)
        result, run = _detect(txs)
        assert len(result[FAN_IN]) == 1 and len(result[FAN_OUT]) == 1
        assert run.rings[0].ring_id == "RING_001"
        assert run.rings[0].smurfing_type == FAN_IN
        assert run.rings[1].ring_id == "RING_002"
        assert run.rings[1].smurfing_type == FAN_OUT

    def test_central_and_participant_roles_coexist(self):
        # HUB collects from ten senders and is itself one of ten senders into TOP.
        txs = _fan_in(aggregator="HUB", senders=10, prefix="A")
        txs += _fan_in(aggregator="TOP", senders=9, prefix="B")
        txs.append(_tx("HUB_TOP", "HUB", "TOP", 500.0, 5))
        _, run = _detect(txs)
        assert set(run.ledger.patterns("HUB")) == {"smurfing_aggregator", "smurfing_participant"}
        assert run.ledger.patterns("TOP") == ["smurfing_aggregator"]


class TestSmurfingRiskScore:
    def _pattern(self, senders, total):
        return FanInPattern(
            aggregator="AGG",
            senders=tuple(f"S{i}" for i in range(senders)),
            transaction_count=senders,
            time_window=TimeWindowBounds(BASE, BASE + timedelta(hours=72)),
            total_amount=total,
        )

    def test_size_bonuses(self):
        assert smurfing_risk_score(self._pattern(10, 1000.0)) == 70.0
        assert smurfing_risk_score(self._pattern(15, 1000.0)) == 75.0
        assert smurfing_risk_score(self._pattern(25, 1000.0)) == 80.0

    def test_large_amount_bonus(self):
        assert smurfing_risk_score(self._pattern(25, 150000.0)) == 90.0
