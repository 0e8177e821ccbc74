"""
store.py – In-process store for analysis results.

Keeps the most recent RESULT_STORE_MAX results so the frontend can fetch or
download a report by session id.  Nothing is written to disk; results are lost
when the process exits.
"""
from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import RESULT_STORE_MAX


class ResultStore:
    def __init__(self, max_results: int = RESULT_STORE_MAX) -> None:
        self._max_results = max_results
        self._results: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self._total_analyses = 0
        self._total_transactions = 0
        self._latest: Optional[Dict[str, Any]] = None

    def save(self, session_id: str, result: Dict[str, Any], transaction_count: int) -> None:
        created_at = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._results[session_id] = result
            self._results.move_to_end(session_id)
            while len(self._results) > self._max_results:
                self._results.popitem(last=False)
            self._total_analyses += 1
            self._total_transactions += int(transaction_count)
            self._latest = {"date": created_at, "summary": result.get("summary", {})}

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._results.get(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_analyses":               self._total_analyses,
                "total_transactions_processed": self._total_transactions,
                "latest_analysis":              self._latest,
            }
