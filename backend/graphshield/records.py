"""
records.py – Plain domain records shared by the graph, detectors and scoring.

Everything here is a dataclass; the pydantic models in models.py only describe
the JSON contract returned over HTTP.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

OUTGOING = "outgoing"
INCOMING = "incoming"


@dataclass(frozen=True)
class Transaction:
    transaction_id: str
    sender_id: str
    receiver_id: str
    amount: float
    timestamp: datetime


@dataclass(frozen=True)
class TransactionEdge:
    """
    One side of a transaction as seen from an account.

    `direction` is OUTGOING when the owning account sent the money (and
    `counterparty` is the receiver) and INCOMING when it received it.
    """
    counterparty: str
    amount: float
    timestamp: datetime
    transaction_id: str
    direction: str


@dataclass(frozen=True)
class EdgeTransaction:
    amount: float
    timestamp: datetime
    transaction_id: str


@dataclass
class AccountStats:
    outgoing_count: int = 0
    incoming_count: int = 0
    total_sent: float = 0.0
    total_received: float = 0.0

    @property
    def total_count(self) -> int:
        return self.outgoing_count + self.incoming_count

    def as_dict(self) -> Dict[str, float]:
        return {
            "outgoingCount": self.outgoing_count,
            "incomingCount": self.incoming_count,
            "totalSent":     round(self.total_sent, 2),
            "totalReceived": round(self.total_received, 2),
        }


@dataclass(frozen=True)
class Neighbors:
    outgoing: List[TransactionEdge]
    incoming: List[TransactionEdge]


@dataclass(frozen=True)
class GraphStats:
    node_count: int
    edge_count: int
    total_transactions: int


# ── Pattern instances ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TimeWindowBounds:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class CyclePattern:
    members: Tuple[str, ...]

    @property
    def length(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class FanInPattern:
    aggregator: str
    senders: Tuple[str, ...]
    transaction_count: int
    time_window: TimeWindowBounds
    total_amount: float

    @property
    def central_account(self) -> str:
        return self.aggregator

    @property
    def counterparties(self) -> Tuple[str, ...]:
        return self.senders

    @property
    def unique_counterparties(self) -> int:
        return len(self.senders)

    @property
    def members(self) -> Tuple[str, ...]:
        return (self.aggregator,) + self.senders


@dataclass(frozen=True)
class FanOutPattern:
    distributor: str
    receivers: Tuple[str, ...]
    transaction_count: int
    time_window: TimeWindowBounds
    total_amount: float

    @property
    def central_account(self) -> str:
        return self.distributor

    @property
    def counterparties(self) -> Tuple[str, ...]:
        return self.receivers

    @property
    def unique_counterparties(self) -> int:
        return len(self.receivers)

    @property
    def members(self) -> Tuple[str, ...]:
        return (self.distributor,) + self.receivers


@dataclass(frozen=True)
class LayeredShellChain:
    members: Tuple[str, ...]
    shell_nodes: Tuple[str, ...]
    is_high_velocity: bool

    @property
    def length(self) -> int:
        return len(self.members)


PatternInstance = Union[CyclePattern, FanInPattern, FanOutPattern, LayeredShellChain]


# ── Rings & scores ─────────────────────────────────────────────────────────────

@dataclass
class FraudRing:
    ring_id: str
    member_accounts: Tuple[str, ...]
    pattern_type: str
    risk_score: float
    smurfing_type: Optional[str] = None
    chain_length: Optional[int] = None
    patterns: Tuple[PatternInstance, ...] = ()

    def as_dict(self) -> Dict:
        return {
            "ring_id":         self.ring_id,
            "member_accounts": list(self.member_accounts),
            "pattern_type":    self.pattern_type,
            "risk_score":      self.risk_score,
        }


@dataclass
class ScoredAccount:
    account_id: str
    raw_score: float
    final_score: float
    factors: List[Dict] = field(default_factory=list)
    reductions: List[Dict] = field(default_factory=list)
    detected_patterns: List[str] = field(default_factory=list)
    ring_id: Optional[str] = None
