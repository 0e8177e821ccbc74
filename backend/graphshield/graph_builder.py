"""
graph_builder.py – Build the directed transaction multigraph.

Storage
-------
A NetworkX DiGraph holds one node per account and one edge per ordered
(sender, receiver) pair.  Parallel transactions between the same pair are
collapsed onto that edge while every individual transaction is kept in the
edge's `transactions` list for time-window analysis.

Node attributes
---------------
stats    : AccountStats            – counts and totals, fixed at build time
outgoing : list[TransactionEdge]   – every sent transaction, input order
incoming : list[TransactionEdge]   – every received transaction, input order

Edge attributes
---------------
transactions : list[EdgeTransaction]
total_amount : float
tx_count     : int

The graph is built once per detection run and is read-only afterwards, so the
merchant / payroll classifications are memoised.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx
import numpy as np
import pandas as pd

from .config import (
    MERCHANT_TX_THRESHOLD,
    MERCHANT_RATIO_LOW,
    MERCHANT_RATIO_HIGH,
    PAYROLL_MIN_OUTGOING,
    PAYROLL_MAX_INCOMING_RATIO,
    PAYROLL_MIN_AMOUNTS,
    PAYROLL_AMOUNT_CV_THRESHOLD,
)
from .errors import InvalidTransactionError
from .records import (
    INCOMING,
    OUTGOING,
    AccountStats,
    EdgeTransaction,
    GraphStats,
    Neighbors,
    Transaction,
    TransactionEdge,
)

log = logging.getLogger(__name__)


def _resolve_timestamp(value, transaction_id) -> datetime:
    """Naive datetime for any input; offsets are converted to UTC and dropped."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTransactionError(transaction_id, f"unparseable timestamp {value!r}") from exc
    if pd.isna(ts):
        raise InvalidTransactionError(transaction_id, f"unparseable timestamp {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def _resolve_amount(value, transaction_id) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidTransactionError(transaction_id, f"non-numeric amount {value!r}") from exc
    if math.isnan(amount) or amount < 0:
        raise InvalidTransactionError(transaction_id, f"amount must be non-negative, got {value!r}")
    return amount


def coefficient_of_variation(amounts: List[float]) -> Optional[float]:
    """Population std / mean, or None when the mean is zero or there is no data."""
    if not amounts:
        return None
    arr = np.asarray(amounts, dtype=float)
    mean = arr.mean()
    if mean == 0:
        return None
    return float(arr.std() / mean)


class TransactionGraph:
    """Directed multigraph of accounts, the shared data source of every detector."""

    def __init__(self):
        self.G = nx.DiGraph()
        self._merchant_cache: Dict[Tuple[str, int], bool] = {}
        self._payroll_cache: Dict[str, bool] = {}

    def clear(self) -> None:
        self.G.clear()
        self._merchant_cache.clear()
        self._payroll_cache.clear()

    def _ensure_account(self, account_id: str) -> dict:
        if account_id not in self.G:
            self.G.add_node(account_id, stats=AccountStats(), outgoing=[], incoming=[])
        return self.G.nodes[account_id]

    def build(self, transactions: Iterable[Transaction]) -> GraphStats:
        """
        Index the transactions in a single pass.

        Raises
        ------
        InvalidTransactionError if a transaction has a missing account id, a
        negative or non-numeric amount, or a timestamp that cannot be resolved.
        """
        self.clear()
        total = 0

        for tx in transactions:
            tx_id = tx.transaction_id
            if not tx.sender_id or not tx.receiver_id:
                raise InvalidTransactionError(tx_id, "sender_id and receiver_id are required")
            amount = _resolve_amount(tx.amount, tx_id)
            ts = _resolve_timestamp(tx.timestamp, tx_id)

            sender = self._ensure_account(tx.sender_id)
            receiver = self._ensure_account(tx.receiver_id)

            sender["outgoing"].append(
                TransactionEdge(tx.receiver_id, amount, ts, tx_id, OUTGOING)
            )
            receiver["incoming"].append(
                TransactionEdge(tx.sender_id, amount, ts, tx_id, INCOMING)
            )

            sender["stats"].outgoing_count += 1
            sender["stats"].total_sent += amount
            receiver["stats"].incoming_count += 1
            receiver["stats"].total_received += amount

            if not self.G.has_edge(tx.sender_id, tx.receiver_id):
                self.G.add_edge(tx.sender_id, tx.receiver_id,
                                transactions=[], total_amount=0.0, tx_count=0)
            edge = self.G.edges[tx.sender_id, tx.receiver_id]
            edge["transactions"].append(EdgeTransaction(amount, ts, tx_id))
            edge["total_amount"] += amount
            edge["tx_count"] += 1
            total += 1

        stats = GraphStats(
            node_count=self.G.number_of_nodes(),
            edge_count=self.G.number_of_edges(),
            total_transactions=total,
        )
        log.info(
            "Graph built: %d nodes, %d edges, %d transactions",
            stats.node_count, stats.edge_count, stats.total_transactions,
        )
        return stats

    # ── Lookups ────────────────────────────────────────────────────────────────

    def all_accounts(self) -> List[str]:
        return list(self.G.nodes)

    def neighbors(self, account_id: str) -> Neighbors:
        if account_id not in self.G:
            return Neighbors(outgoing=[], incoming=[])
        node = self.G.nodes[account_id]
        return Neighbors(outgoing=node["outgoing"], incoming=node["incoming"])

    def outgoing_neighbors(self, account_id: str) -> List[str]:
        # DiGraph keeps successors in first-seen order, already deduplicated.
        if account_id not in self.G:
            return []
        return list(self.G.successors(account_id))

    def incoming_neighbors(self, account_id: str) -> List[str]:
        if account_id not in self.G:
            return []
        return list(dict.fromkeys(e.counterparty for e in self.G.nodes[account_id]["incoming"]))

    def account_stats(self, account_id: str) -> Optional[AccountStats]:
        if account_id not in self.G:
            return None
        return self.G.nodes[account_id]["stats"]

    def total_transaction_count(self, account_id: str) -> int:
        stats = self.account_stats(account_id)
        return stats.total_count if stats else 0

    def edge_transactions(self, sender_id: str, receiver_id: str) -> List[EdgeTransaction]:
        if not self.G.has_edge(sender_id, receiver_id):
            return []
        return self.G.edges[sender_id, receiver_id]["transactions"]

    # ── Legitimate-flow heuristics ─────────────────────────────────────────────

    def is_merchant(self, account_id: str, tx_threshold: int = MERCHANT_TX_THRESHOLD) -> bool:
        """
        High-volume, strongly one-directional account (payment processor).

        True when total tx count >= tx_threshold, the account has received at
        least once, and the outgoing/incoming ratio is < 0.1 or > 10.
        """
        key = (account_id, tx_threshold)
        if key not in self._merchant_cache:
            stats = self.account_stats(account_id)
            result = False
            if stats and stats.total_count >= tx_threshold and stats.incoming_count > 0:
                ratio = stats.outgoing_count / stats.incoming_count
                result = ratio < MERCHANT_RATIO_LOW or ratio > MERCHANT_RATIO_HIGH
            self._merchant_cache[key] = result
        return self._merchant_cache[key]

    def is_payroll_account(self, account_id: str) -> bool:
        """
        Regular, similarly-sized disbursements with almost nothing coming in.

        True when the account sent >= 20 transactions, received no more than
        10 % of that, and the coefficient of variation of the outgoing amounts
        is below 0.3.
        """
        if account_id not in self._payroll_cache:
            self._payroll_cache[account_id] = self._classify_payroll(account_id)
        return self._payroll_cache[account_id]

    def _classify_payroll(self, account_id: str) -> bool:
        stats = self.account_stats(account_id)
        if not stats or stats.outgoing_count < PAYROLL_MIN_OUTGOING:
            return False
        if stats.incoming_count > stats.outgoing_count * PAYROLL_MAX_INCOMING_RATIO:
            return False

        amounts = [e.amount for e in self.G.nodes[account_id]["outgoing"]]
        if len(amounts) < PAYROLL_MIN_AMOUNTS:
            return False
        cv = coefficient_of_variation(amounts)
        return cv is not None and cv < PAYROLL_AMOUNT_CV_THRESHOLD

    def is_legitimate(self, account_id: str) -> bool:
        """Merchant or payroll – excluded as a detection starting point."""
        return self.is_merchant(account_id) or self.is_payroll_account(account_id)

    # ── Export ─────────────────────────────────────────────────────────────────

    def _node_payload(self, account_id: str) -> Dict:
        return {"id": account_id, **self.G.nodes[account_id]["stats"].as_dict()}

    def to_visualization(self) -> Dict[str, List[Dict]]:
        """Whole graph: one node per account, one edge per ordered pair."""
        nodes = [self._node_payload(n) for n in self.G.nodes]
        edges = []
        for u, v, attrs in self.G.edges(data=True):
            latest = max(t.timestamp for t in attrs["transactions"])
            edges.append({
                "source":           u,
                "target":           v,
                "amount":           round(attrs["total_amount"], 2),
                "transactionCount": attrs["tx_count"],
                "timestamp":        latest.isoformat(),
            })
        return {"nodes": nodes, "edges": edges}

    def subgraph(self, account_ids: Iterable[str]) -> Dict[str, List[Dict]]:
        """Nodes and edges restricted to the given accounts (unknown ids are ignored)."""
        ids = [a for a in dict.fromkeys(account_ids) if a in self.G]
        nodes = [self._node_payload(n) for n in ids]
        edges = [
            {
                "source":           u,
                "target":           v,
                "amount":           round(attrs["total_amount"], 2),
                "transactionCount": attrs["tx_count"],
            }
            for u, v, attrs in self.G.subgraph(ids).edges(data=True)
        ]
        return {"nodes": nodes, "edges": edges}
