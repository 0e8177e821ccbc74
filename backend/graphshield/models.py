"""
models.py – Pydantic response models.
Defines the exact JSON contract the API must return.
"""
from __future__ import annotations
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class SuspiciousAccount(BaseModel):
    """
    Mandatory fields: account_id, suspicion_score, detected_patterns, ring_id.
    ring_id is null only when an account is flagged outside any ring.
    """
    model_config = ConfigDict(extra="allow")

    account_id: str
    suspicion_score: float = Field(..., ge=0.0, le=100.0)
    detected_patterns: List[str]
    ring_id: Optional[str] = None


class FraudRing(BaseModel):
    model_config = ConfigDict(extra="allow")

    ring_id: str
    member_accounts: List[str]
    pattern_type: str
    risk_score: float = Field(..., ge=0.0, le=100.0)


class AnalysisSummary(BaseModel):
    total_accounts_analyzed: int
    suspicious_accounts_flagged: int
    fraud_rings_detected: int
    processing_time_seconds: float


class GraphNode(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    outgoing_count: int = Field(..., alias="outgoingCount")
    incoming_count: int = Field(..., alias="incomingCount")
    total_sent: float = Field(..., alias="totalSent")
    total_received: float = Field(..., alias="totalReceived")
    suspicious: bool = False
    score: float = 0.0
    patterns: List[str] = []
    ring_id: Optional[str] = None


class GraphEdge(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    source: str
    target: str
    amount: float
    transaction_count: int = Field(..., alias="transactionCount")
    timestamp: Optional[str] = None


class GraphData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nodes: List[GraphNode]
    edges: List[GraphEdge]
    total_nodes: int = Field(..., alias="totalNodes")
    is_filtered: bool = Field(..., alias="isFiltered")


class DetectionDetails(BaseModel):
    cycles_detected: int
    fan_in_patterns: int
    fan_out_patterns: int
    layered_shell_chains: int


class ParseStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_rows: int
    valid_rows: int
    dropped_rows: int
    duplicate_tx_ids: int
    self_transactions: int
    negative_amounts: int
    invalid_timestamps: int
    column_mapping: Dict[str, str]
    warnings: List[str]


class AccountDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    account_id: str
    suspicion_score: float
    raw_score: float
    scoring_factors: List[Dict]
    score_reductions: List[Dict]
    detected_patterns: List[str]
    ring_id: Optional[str] = None
    account_stats: Optional[Dict] = None
    is_merchant: bool
    is_payroll: bool


class DetectionOutput(BaseModel):
    """The downloadable report: the three mandatory sections only."""
    suspicious_accounts: List[SuspiciousAccount]
    fraud_rings: List[FraudRing]
    summary: AnalysisSummary


class AnalysisResult(DetectionOutput):
    session_id: str
    graph: GraphData
    detection_details: DetectionDetails
    parse_stats: Optional[ParseStats] = None
    account_details: Optional[List[AccountDetail]] = None
