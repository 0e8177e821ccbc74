"""
config.py – Centralised configuration via environment variables.
All tunable thresholds live here so nothing is scattered across modules.
"""
import os


# ── Upload limits ──────────────────────────────────────────────────────────────
MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "20"))
MAX_FILE_SIZE_BYTES: int = MAX_FILE_SIZE_MB * 1024 * 1024
MAX_ROWS: int = int(os.getenv("MAX_ROWS", "10000"))

# ── Legitimate-flow heuristics ─────────────────────────────────────────────────
# MERCHANT: high volume with strongly one-directional flow (payment processor).
#   total tx >= MERCHANT_TX_THRESHOLD and out/in ratio outside
#   [MERCHANT_RATIO_LOW, MERCHANT_RATIO_HIGH].
MERCHANT_TX_THRESHOLD: int = int(os.getenv("MERCHANT_TX_THRESHOLD", "1000"))
MERCHANT_RATIO_LOW: float = 0.1
MERCHANT_RATIO_HIGH: float = 10.0

# PAYROLL: many similarly-sized disbursements, almost nothing coming in.
PAYROLL_MIN_OUTGOING: int = int(os.getenv("PAYROLL_MIN_OUTGOING", "20"))
PAYROLL_MAX_INCOMING_RATIO: float = 0.1
PAYROLL_MIN_AMOUNTS: int = 5
PAYROLL_AMOUNT_CV_THRESHOLD: float = float(os.getenv("PAYROLL_AMOUNT_CV_THRESHOLD", "0.3"))

# ── Time windows ───────────────────────────────────────────────────────────────
DEFAULT_WINDOW_HOURS: float = float(os.getenv("DEFAULT_WINDOW_HOURS", "72"))
HIGH_VELOCITY_HOURS: float = float(os.getenv("HIGH_VELOCITY_HOURS", "24"))
HIGH_VELOCITY_MIN_TX: int = 3

# ── Cycle detection ────────────────────────────────────────────────────────────
CYCLE_MIN_LEN: int = 3
CYCLE_MAX_LEN: int = 5

# ── Smurfing detection ─────────────────────────────────────────────────────────
FAN_THRESHOLD: int = int(os.getenv("FAN_THRESHOLD", "10"))
SMURF_WINDOW_HOURS: float = float(os.getenv("SMURF_WINDOW_HOURS", "72"))

# ── Shell detection ────────────────────────────────────────────────────────────
SHELL_MIN_HOPS: int = 3
SHELL_MAX_TX: int = int(os.getenv("SHELL_MAX_TX", "3"))
SHELL_MIN_TX: int = 2
SHELL_MAX_HOPS: int = 10

# ── Provisional ring risk (per detector) ───────────────────────────────────────
CYCLE_RING_BASE: float = 70.0
CYCLE_RING_TRIANGLE_BONUS: float = 15.0
CYCLE_RING_MANY_BONUS: float = 10.0
CYCLE_RING_MANY_COUNT: int = 3

SMURF_RING_BASE: float = 60.0
# (minimum unique counterparties, bonus) – first match wins
SMURF_RING_SIZE_BONUSES: tuple = ((20, 20.0), (15, 15.0), (10, 10.0))
SMURF_RING_LARGE_AMOUNT: float = 100_000.0
SMURF_RING_LARGE_AMOUNT_BONUS: float = 10.0

SHELL_RING_BASE: float = 50.0
# (minimum chain length in accounts, bonus) – first match wins
SHELL_RING_LENGTH_BONUSES: tuple = ((5, 20.0), (4, 15.0), (3, 10.0))
SHELL_RING_VELOCITY_BONUS: float = 15.0
SHELL_RING_MULTI_SHELL_BONUS: float = 10.0

# ── Scoring ────────────────────────────────────────────────────────────────────
SCORE_WEIGHTS: dict = {
    "cycle_involvement":    40.0,
    "smurfing_aggregator":  30.0,
    "smurfing_distributor": 30.0,
    "smurfing_participant": 15.0,
    "layered_shell":        20.0,
    "high_velocity":        10.0,
}

SCORE_REDUCTIONS: dict = {
    "merchant_account":         30.0,
    "payroll_account":          30.0,
    "high_volume_low_variance": 20.0,
}

# High volume + uniform amounts across every incident transaction → likely a
# legitimate operational account.
HIGH_VOLUME_TX_COUNT: int = int(os.getenv("HIGH_VOLUME_TX_COUNT", "500"))
HIGH_VOLUME_CV_THRESHOLD: float = 0.2

# Ring risk recomputation: avg * RING_AVG_WEIGHT + max * RING_MAX_WEIGHT
RING_AVG_WEIGHT: float = 0.4
RING_MAX_WEIGHT: float = 0.6

# ── Graph payload ──────────────────────────────────────────────────────────────
# Above this many accounts only flagged accounts, ring members and a sample of
# their neighbours are sent to the frontend.
GRAPH_DISPLAY_NODE_LIMIT: int = int(os.getenv("GRAPH_DISPLAY_NODE_LIMIT", "500"))
GRAPH_NEIGHBOR_SAMPLE: int = 5

# ── Result store ───────────────────────────────────────────────────────────────
RESULT_STORE_MAX: int = int(os.getenv("RESULT_STORE_MAX", "50"))
