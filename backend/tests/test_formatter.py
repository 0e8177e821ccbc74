"""
Tests for the response payload: graph decoration, large-graph filtering and
the download subset.
"""
from datetime import datetime, timedelta

from graphshield import formatter
from graphshield.formatter import build_graph_payload, download_payload, format_output
from graphshield.pipeline import analyze_transactions
from graphshield.records import Transaction

BASE = datetime(2024, 1, 1, 10, 0, 0)


def _tx(tx_id, sender, receiver, amount=100.0, hours=0.0):
    return Transaction(tx_id, sender, receiver, amount, BASE + timedelta(hours=hours))


def _report(extra_pairs=10):
    txs = [
        _tx("T1", "A", "B", 1000.0, 0),
        _tx("T2", "B", "C", 950.0, 1),
        _tx("T3", "C", "A", 900.0, 2),
    ]
    txs += [_tx(f"P{i}", f"X{i}", f"Y{i}", 10.0, i) for i in range(extra_pairs)]
    return analyze_transactions(txs)


class TestGraphPayload:
    def test_full_graph(self):
        payload = build_graph_payload(_report())
        assert payload["isFiltered"] is False
        assert payload["totalNodes"] == 23
        assert len(payload["nodes"]) == 23
        a = next(n for n in payload["nodes"] if n["id"] == "A")
        assert a["suspicious"] is True
        assert a["score"] == 40.0
        assert a["ring_id"] == "RING_001"
        x = next(n for n in payload["nodes"] if n["id"] == "X0")
        assert x["suspicious"] is False
        assert x["patterns"] == []
        assert x["ring_id"] is None

    def test_large_graph_filtered(self, monkeypatch):
        monkeypatch.setattr(formatter, "GRAPH_DISPLAY_NODE_LIMIT", 5)
        payload = build_graph_payload(_report())
        assert payload["isFiltered"] is True
        assert payload["totalNodes"] == 23
        assert {n["id"] for n in payload["nodes"]} == {"A", "B", "C"}
        assert len(payload["edges"]) == 3


class TestFormatOutput:
    def test_sections(self):
        result = format_output(_report(), "session-1", {"valid_rows": 13})
        assert result["session_id"] == "session-1"
        assert result["parse_stats"] == {"valid_rows": 13}
        assert result["detection_details"]["cycles_detected"] == 1
        assert "account_details" not in result

    def test_detail(self):
        result = format_output(_report(), "session-2", detail=True)
        assert "parse_stats" not in result
        details = {d["account_id"]: d for d in result["account_details"]}
        assert set(details) == {"A", "B", "C"}
        assert details["A"]["scoring_factors"] == [{"factor": "cycle_involvement", "points": 40.0}]
        assert details["A"]["account_stats"]["outgoingCount"] == 1
        assert details["A"]["is_merchant"] is False

    def test_download_subset(self):
        result = format_output(_report(), "session-3")
        payload = download_payload(result)
        assert list(payload) == ["suspicious_accounts", "fraud_rings", "summary"]
        assert payload["fraud_rings"] == result["fraud_rings"]
