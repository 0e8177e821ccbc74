"""
Tests for the in-process result store.
"""
from graphshield.store import ResultStore


def _result(flagged):
    return {"summary": {"suspicious_accounts_flagged": flagged}}


class TestResultStore:
    def test_save_and_get(self):
        store = ResultStore()
        store.save("s1", _result(3), transaction_count=10)
        assert store.get("s1") == _result(3)
        assert store.get("missing") is None

    def test_oldest_evicted(self):
        store = ResultStore(max_results=2)
        for i in range(3):
            store.save(f"s{i}", _result(i), transaction_count=1)
        assert len(store) == 2
        assert store.get("s0") is None
        assert store.get("s2") is not None

    def test_stats(self):
        store = ResultStore(max_results=1)
        assert store.stats()["latest_analysis"] is None
        store.save("s1", _result(1), transaction_count=10)
        store.save("s2", _result(5), transaction_count=20)
        stats = store.stats()
        assert stats["total_analyses"] == 2
        assert stats["total_transactions_processed"] == 30
        assert stats["latest_analysis"]["summary"] == {"suspicious_accounts_flagged": 5}
