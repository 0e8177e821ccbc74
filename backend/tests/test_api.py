"""
End-to-end API tests: upload a CSV covering every pattern and check the JSON
contract, stored results and download.
"""
import csv
import io

import pytest
from fastapi.testclient import TestClient

from graphshield.main import app


def _rows():
    rows = [["transaction_id", "sender_id", "receiver_id", "amount", "timestamp"]]

    # Cycle: ACC_A -> ACC_B -> ACC_C -> ACC_A
    rows += [
        ["CYC_01", "ACC_A", "ACC_B", "500", "2024-01-01 10:00:00"],
        ["CYC_02", "ACC_B", "ACC_C", "490", "2024-01-01 11:00:00"],
        ["CYC_03", "ACC_C", "ACC_A", "480", "2024-01-01 12:00:00"],
    ]

    # Fan-in: 12 unique senders -> HUB_IN
    for i in range(12):
        rows.append([f"FI_{i:02d}", f"SENDER_{i:02d}", "HUB_IN", str(100 + i), "2024-01-02 10:00:00"])

    # Fan-out: HUB_OUT -> 12 unique receivers
    for i in range(12):
        rows.append([f"FO_{i:02d}", "HUB_OUT", f"RECEIVER_{i:02d}", str(200 + i), "2024-01-03 14:00:00"])

    # Shell chain: S_SRC -> SHELL_1 -> SHELL_2 -> S_DST, with busy endpoints
    for i in range(4):
        rows.append([f"S_SRC_{i}", "S_SRC", f"EXTRA_SRC_{i}", "50", f"2024-01-04 0{i}:00:00"])
    for i in range(4):
        rows.append([f"S_DST_{i}", f"EXTRA_DST_{i}", "S_DST", "50", f"2024-01-04 0{i}:00:00"])
    rows += [
        ["SHELL_01", "S_SRC", "SHELL_1", "300", "2024-01-05 09:00:00"],
        ["SHELL_02", "SHELL_1", "SHELL_2", "290", "2024-01-05 10:00:00"],
        ["SHELL_03", "SHELL_2", "S_DST", "280", "2024-01-05 11:00:00"],
    ]
    return rows


def _csv_bytes(rows):
    buf = io.StringIO()
    csv.writer(buf).writerows(rows)
    return buf.getvalue().encode("utf-8")


def _upload(client, content, filename="transactions.csv", **params):
    return client.post(
        "/analyze",
        params=params,
        files={"file": (filename, content, "text/csv")},
    )


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="module")
def analysis(client):
    resp = _upload(client, _csv_bytes(_rows()))
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestService:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"

    def test_request_id_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"


class TestAnalyze:
    def test_top_level_keys(self, analysis):
        for key in ("session_id", "suspicious_accounts", "fraud_rings", "summary",
                    "graph", "detection_details", "parse_stats"):
            assert key in analysis

    def test_summary(self, analysis):
        s = analysis["summary"]
        assert s["total_accounts_analyzed"] == len(analysis["graph"]["nodes"])
        assert s["suspicious_accounts_flagged"] == len(analysis["suspicious_accounts"])
        assert s["fraud_rings_detected"] == len(analysis["fraud_rings"])
        assert 0 <= s["processing_time_seconds"] <= 30

    def test_every_pattern_found(self, analysis):
        types = {r["pattern_type"] for r in analysis["fraud_rings"]}
        assert types == {"cycle", "smurfing", "layered_shell"}
        details = analysis["detection_details"]
        assert details["cycles_detected"] == 1
        assert details["fan_in_patterns"] == 1
        assert details["fan_out_patterns"] == 1
        assert details["layered_shell_chains"] == 2

    def test_ring_contract(self, analysis):
        ids = [r["ring_id"] for r in analysis["fraud_rings"]]
        assert ids == [f"RING_{i:03d}" for i in range(1, len(ids) + 1)]
        for ring in analysis["fraud_rings"]:
            assert set(ring) == {"ring_id", "member_accounts", "pattern_type", "risk_score"}
            assert 0 <= ring["risk_score"] <= 100

    def test_flagged_accounts(self, analysis):
        flagged = {a["account_id"] for a in analysis["suspicious_accounts"]}
        assert {"ACC_A", "ACC_B", "ACC_C", "HUB_IN", "HUB_OUT", "SHELL_1", "SHELL_2"} <= flagged
        assert "EXTRA_SRC_0" not in flagged

    def test_accounts_sorted_and_bounded(self, analysis):
        scores = [a["suspicion_score"] for a in analysis["suspicious_accounts"]]
        assert scores == sorted(scores, reverse=True)
        assert all(0 < s <= 100 for s in scores)

    def test_shell_members(self, analysis):
        shell = next(r for r in analysis["fraud_rings"] if r["pattern_type"] == "layered_shell")
        assert {"SHELL_1", "S_SRC"} <= set(shell["member_accounts"])

    def test_graph_payload(self, analysis):
        g = analysis["graph"]
        assert g["isFiltered"] is False
        assert g["totalNodes"] == len(g["nodes"])
        node = next(n for n in g["nodes"] if n["id"] == "HUB_IN")
        assert node["incomingCount"] == 12
        assert node["suspicious"] is True
        assert node["patterns"] == ["smurfing_aggregator"]
        edge = g["edges"][0]
        assert {"source", "target", "amount", "transactionCount"} <= set(edge)

    def test_parse_stats(self, analysis):
        ps = analysis["parse_stats"]
        assert ps["valid_rows"] == len(_rows()) - 1
        assert ps["warnings"] == []

    def test_detail_breakdown(self, client):
        resp = _upload(client, _csv_bytes(_rows()), detail="true")
        details = resp.json()["account_details"]
        assert details
        hub = next(d for d in details if d["account_id"] == "HUB_IN")
        assert hub["raw_score"] == 30
        assert hub["scoring_factors"] == [{"factor": "smurfing_aggregator", "points": 30}]

    def test_no_detail_by_default(self, analysis):
        assert analysis.get("account_details") is None


class TestErrors:
    def test_non_csv_rejected(self, client):
        resp = _upload(client, b"irrelevant", filename="data.txt")
        assert resp.status_code == 400

    def test_missing_columns(self, client):
        resp = _upload(client, b"transaction_id,sender_id\nT1,A\n")
        assert resp.status_code == 422
        assert "Missing required columns" in resp.json()["detail"]

    def test_no_valid_rows(self, client):
        resp = _upload(client, _csv_bytes([
            ["transaction_id", "sender_id", "receiver_id", "amount", "timestamp"],
            ["T1", "A", "B", "-5", "2024-01-01 10:00:00"],
        ]))
        assert resp.status_code == 422

    def test_unknown_result(self, client):
        assert client.get("/results/does-not-exist").status_code == 404
        assert client.get("/results/does-not-exist/download").status_code == 404


class TestResults:
    def test_fetch_stored(self, client, analysis):
        resp = client.get(f"/results/{analysis['session_id']}")
        assert resp.status_code == 200
        assert resp.json()["fraud_rings"] == analysis["fraud_rings"]

    def test_download(self, client, analysis):
        session_id = analysis["session_id"]
        resp = client.get(f"/results/{session_id}/download")
        assert resp.status_code == 200
        assert f"graphshield-result-{session_id}.json" in resp.headers["content-disposition"]
        body = resp.json()
        assert set(body) == {"suspicious_accounts", "fraud_rings", "summary"}
        assert body["summary"] == analysis["summary"]

    def test_stats(self, client, analysis):
        body = client.get("/stats").json()
        assert body["total_analyses"] >= 1
        assert body["total_transactions_processed"] >= len(_rows()) - 1
        assert body["latest_analysis"] is not None
