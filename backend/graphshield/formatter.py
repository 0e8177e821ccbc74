"""
formatter.py – Produce the final API response.

JSON contract
-------------
{
  "session_id":          str,
  "suspicious_accounts": [{account_id, suspicion_score, detected_patterns, ring_id}],
  "fraud_rings":         [{ring_id, member_accounts, pattern_type, risk_score}],
  "summary":             {total_accounts_analyzed, suspicious_accounts_flagged,
                          fraud_rings_detected, processing_time_seconds},
  "graph":               {nodes: [...], edges: [...], totalNodes, isFiltered},
  "detection_details":   {cycles_detected, fan_in_patterns, fan_out_patterns,
                          layered_shell_chains},
  "parse_stats":         {...},          // when produced from a CSV upload
  "account_details":     [...]           // only when detail=true
}

Scores are rounded to 1 decimal place; suspicious_accounts sorted descending.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .config import GRAPH_DISPLAY_NODE_LIMIT, GRAPH_NEIGHBOR_SAMPLE
from .pipeline import DetectionReport

log = logging.getLogger(__name__)

DOWNLOAD_KEYS = ("suspicious_accounts", "fraud_rings", "summary")


def build_graph_payload(report: DetectionReport) -> Dict[str, Any]:
    """
    Graph for the visualisation layer, decorated with scoring results.

    Small graphs are sent whole.  Above GRAPH_DISPLAY_NODE_LIMIT accounts only
    flagged accounts, ring members and a few direct neighbours of each flagged
    account are included.
    """
    graph = report.graph
    output = report.output
    total_nodes = len(graph.all_accounts())
    is_filtered = total_nodes > GRAPH_DISPLAY_NODE_LIMIT

    if is_filtered:
        relevant = [a["account_id"] for a in output["suspicious_accounts"]]
        for ring in output["fraud_rings"]:
            relevant.extend(ring["member_accounts"])
        for acc in output["suspicious_accounts"]:
            neighbors = graph.neighbors(acc["account_id"])
            relevant.extend(e.counterparty for e in neighbors.outgoing[:GRAPH_NEIGHBOR_SAMPLE])
            relevant.extend(e.counterparty for e in neighbors.incoming[:GRAPH_NEIGHBOR_SAMPLE])
        payload = graph.subgraph(relevant)
        log.info("Large dataset: showing %d of %d accounts", len(payload["nodes"]), total_nodes)
    else:
        payload = graph.to_visualization()

    flagged = {a["account_id"]: a for a in output["suspicious_accounts"]}
    for node in payload["nodes"]:
        acc = flagged.get(node["id"])
        node["suspicious"] = acc is not None
        node["score"]      = acc["suspicion_score"] if acc else 0.0
        node["patterns"]   = acc["detected_patterns"] if acc else []
        node["ring_id"]    = acc["ring_id"] if acc else None

    payload["totalNodes"] = total_nodes
    payload["isFiltered"] = is_filtered
    return payload


def format_output(
    report: DetectionReport,
    session_id: str,
    parse_stats: Optional[dict] = None,
    detail: bool = False,
) -> Dict[str, Any]:
    """
    Build the complete API response.

    Parameters
    ----------
    report      : result of pipeline.analyze_transactions()
    session_id  : identifier the result is stored under
    parse_stats : optional parse diagnostic info
    detail      : include the per-account scoring breakdown
    """
    response: Dict[str, Any] = {
        "session_id":        session_id,
        **report.output,
        "graph":             build_graph_payload(report),
        "detection_details": dict(report.detection_details),
    }
    if parse_stats:
        response["parse_stats"] = parse_stats
    if detail:
        response["account_details"] = report.scoring.detailed_analysis()

    log.info(
        "Format complete: %d suspicious accounts, %d fraud rings",
        len(response["suspicious_accounts"]),
        len(response["fraud_rings"]),
    )
    return response


def download_payload(result: Dict[str, Any]) -> Dict[str, Any]:
    """The three mandatory report sections, as offered for download."""
    return {key: result[key] for key in DOWNLOAD_KEYS}
