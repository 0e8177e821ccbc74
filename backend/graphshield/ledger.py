"""
ledger.py – Per-run detection state: ring ID assignment and the pattern ledger.

A DetectionRun is created fresh for every analysis and handed to each detector,
so ring IDs restart at RING_001 for every run and nothing leaks between runs.

Pattern ledger
--------------
Maps account_id → ordered list of PatternRef.  Reads always walk the kinds in
precedence order (cycle, smurfing, layered_shell), which gives:
  • detected tags: cycle_length_N…, smurfing_*…, layered_shell, high_velocity
  • primary ring : ring of the first-recorded pattern of the highest-precedence
                   kind (not the ring with the highest risk score)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .records import FraudRing


KIND_CYCLE = "cycle"
KIND_SMURFING = "smurfing"
KIND_LAYERED_SHELL = "layered_shell"

_KIND_ORDER = (KIND_CYCLE, KIND_SMURFING, KIND_LAYERED_SHELL)


@dataclass(frozen=True)
class PatternRef:
    kind: str
    tag: str
    ring_id: str
    high_velocity: bool = False


class PatternLedger:
    def __init__(self):
        self._entries: Dict[str, List[PatternRef]] = {}

    def record(self, account_id: str, ref: PatternRef) -> None:
        self._entries.setdefault(account_id, []).append(ref)

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def accounts(self) -> List[str]:
        return list(self._entries)

    def _ordered(self, account_id: str) -> Iterator[PatternRef]:
        refs = self._entries.get(account_id, [])
        for kind in _KIND_ORDER:
            for ref in refs:
                if ref.kind == kind:
                    yield ref

    def refs(self, account_id: str) -> List[PatternRef]:
        return list(self._ordered(account_id))

    def patterns(self, account_id: str) -> List[str]:
        """Deduplicated pattern tags in precedence order."""
        tags: List[str] = []
        for ref in self._ordered(account_id):
            tags.append(ref.tag)
            if ref.high_velocity:
                tags.append("high_velocity")
        return list(dict.fromkeys(tags))

    def ring_id(self, account_id: str) -> Optional[str]:
        for ref in self._ordered(account_id):
            return ref.ring_id
        return None


class DetectionRun:
    """Owns the ring counter, the ring table and the pattern ledger for one analysis."""

    def __init__(self):
        self._ring_counter = 0
        self.rings: List[FraudRing] = []
        self.ledger = PatternLedger()

    def next_ring_id(self) -> str:
        self._ring_counter += 1
        return f"RING_{self._ring_counter:03d}"

    def add_ring(self, ring: FraudRing) -> FraudRing:
        self.rings.append(ring)
        return ring

    def ring(self, ring_id: str) -> Optional[FraudRing]:
        return next((r for r in self.rings if r.ring_id == ring_id), None)

    def rings_of_type(self, pattern_type: str) -> List[FraudRing]:
        return [r for r in self.rings if r.pattern_type == pattern_type]
