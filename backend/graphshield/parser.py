"""
parser.py – CSV ingestion, column-alias resolution and row validation.

Produces the clean transaction list the detection core expects.

Validates:
  • Required columns present (under their canonical name or a known alias)
  • amount numeric and >= 0 (currency symbols, thousands separators and
    accounting-style "(123.45)" negatives understood)
  • timestamp parseable (common formats, pandas inference, epoch s / ms)
  • No self-transactions (sender == receiver)
  • Duplicate transaction_id detection
  • Encoding auto-detection (UTF-8 with/without BOM, latin-1 fallback)
"""
from __future__ import annotations

import io
import logging
import re
from typing import Dict, List, Tuple

import pandas as pd

from .config import MAX_ROWS
from .errors import CSVParseError
from .records import Transaction

log = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("transaction_id", "sender_id", "receiver_id", "amount", "timestamp")

COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "transaction_id": ("transaction_id", "txn_id", "tx_id", "id", "trans_id",
                       "transaction", "txnid"),
    "sender_id": ("sender_id", "sender", "from_id", "from", "source_id", "source",
                  "from_account", "sender_account", "payer_id", "payer", "origin"),
    "receiver_id": ("receiver_id", "receiver", "to_id", "to", "target_id", "target",
                    "to_account", "receiver_account", "payee_id", "payee",
                    "destination", "beneficiary"),
    "amount": ("amount", "value", "sum", "amt", "transaction_amount", "tx_amount",
               "money", "transfer_amount"),
    "timestamp": ("timestamp", "time", "date", "datetime", "created_at",
                  "transaction_date", "tx_date", "trans_date", "created",
                  "transaction_time"),
}

_TS_FORMATS = ["%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d", "%Y%m%d"]
_CURRENCY_RE = re.compile(r"[$€£¥₹,\s]")
_PAREN_NEG_RE = re.compile(r"^\((.+)\)$")


def _decode_bytes(raw: bytes) -> str:
    """Try UTF-8 (stripping a BOM), then latin-1 fallback."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1", errors="replace")


def normalize_column_name(name: str) -> str:
    name = str(name).strip().lower()
    name = re.sub(r"[\s\-.]+", "_", name)
    return name.replace('"', "").replace("'", "")


def resolve_columns(headers: List[str]) -> Tuple[Dict[str, str], List[str]]:
    """
    Map each canonical field to the first header matching one of its aliases.

    Returns (mapping canonical → original header, missing canonical fields).
    """
    normalized = {normalize_column_name(h): h for h in reversed(headers)}
    mapping: Dict[str, str] = {}
    missing: List[str] = []
    for field, aliases in COLUMN_ALIASES.items():
        match = next((normalized[a] for a in aliases if a in normalized), None)
        if match is None:
            missing.append(field)
        else:
            mapping[field] = match
    return mapping, missing


def parse_amounts(series: pd.Series) -> pd.Series:
    cleaned = (
        series.astype(str)
        .str.replace(_CURRENCY_RE, "", regex=True)
        .str.replace(_PAREN_NEG_RE, r"-\1", regex=True)
    )
    return pd.to_numeric(cleaned, errors="coerce")


def parse_timestamps(series: pd.Series) -> pd.Series:
    """
    Numeric values are read as epoch milliseconds (> 1e12) or seconds (> 1e9).
    Everything else tries each known format, then pandas mixed-format inference.
    """
    result = pd.Series(pd.NaT, index=series.index, dtype="datetime64[ns]")

    numeric = pd.to_numeric(series, errors="coerce")
    millis = numeric > 1e12
    seconds = (numeric > 1e9) & ~millis
    if millis.any():
        result.loc[millis] = pd.to_datetime(numeric[millis], unit="ms")
    if seconds.any():
        result.loc[seconds] = pd.to_datetime(numeric[seconds], unit="s")

    # Numbers too small to be epoch values (e.g. 20240101) are parsed as text.
    text = series[~(millis | seconds)]
    if not text.empty:
        parsed = None
        for fmt in _TS_FORMATS:
            candidate = pd.to_datetime(text, format=fmt, errors="coerce")
            if candidate.notna().mean() >= 0.9:
                parsed = candidate
                break
        if parsed is None:
            # Offsets are normalised to UTC and dropped; naive values are kept as-is.
            parsed = pd.to_datetime(text, format="mixed", errors="coerce", utc=True)
            parsed = parsed.dt.tz_convert(None)
        result.loc[text.index] = parsed
    return result


def parse_csv(file_bytes: bytes) -> Tuple[pd.DataFrame, dict]:
    """
    Parse and validate CSV bytes.

    Returns
    -------
    df    : pd.DataFrame  – canonical columns, cleaned, ready for analysis
    stats : dict          – parse statistics and warnings

    Raises
    ------
    CSVParseError on fatal errors (unreadable file, missing columns, zero
    valid rows).
    """
    stats: dict = {
        "total_rows": 0,
        "valid_rows": 0,
        "dropped_rows": 0,
        "duplicate_tx_ids": 0,
        "self_transactions": 0,
        "negative_amounts": 0,
        "invalid_timestamps": 0,
        "column_mapping": {},
        "warnings": [],
    }

    # 1. Decode & read ─────────────────────────────────────────────────────────
    text = _decode_bytes(file_bytes)

    # Comment lines ('#') and blank lines are annotations, not data.
    cleaned_lines = [
        line for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
    if not cleaned_lines:
        raise CSVParseError("CSV file is empty – no rows found.")

    try:
        df = pd.read_csv(io.StringIO("\n".join(cleaned_lines)), dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise CSVParseError(f"CSV parse error: {exc}") from exc

    stats["total_rows"] = len(df)
    log.info("CSV loaded: %d raw rows", len(df))

    if df.empty:
        raise CSVParseError("CSV file is empty – no rows found.")

    # 2. Resolve column aliases ────────────────────────────────────────────────
    headers = [str(c) for c in df.columns]
    mapping, missing = resolve_columns(headers)
    if missing:
        raise CSVParseError(
            f"Missing required columns: {', '.join(missing)}. "
            f"Found columns: {', '.join(headers)}. "
            f"Expected columns (or aliases): {', '.join(REQUIRED_COLUMNS)}"
        )
    stats["column_mapping"] = mapping
    df = df[[mapping[c] for c in REQUIRED_COLUMNS]].copy()
    df.columns = list(REQUIRED_COLUMNS)

    # 3. Strip whitespace ──────────────────────────────────────────────────────
    for col in REQUIRED_COLUMNS:
        df[col] = df[col].str.strip()

    # 4. Drop empty-field rows ─────────────────────────────────────────────────
    mask_empty = df.eq("").any(axis=1)
    n_empty = int(mask_empty.sum())
    if n_empty:
        stats["warnings"].append(f"Dropped {n_empty} rows with empty fields.")
    df = df[~mask_empty].copy()

    # 5. Parse & validate amount ───────────────────────────────────────────────
    df["amount"] = parse_amounts(df["amount"])
    bad = df["amount"].isna()
    if bad.any():
        stats["warnings"].append(f"Dropped {int(bad.sum())} rows with non-numeric amount.")
        df = df[~bad].copy()

    neg = df["amount"] < 0
    stats["negative_amounts"] = int(neg.sum())
    if stats["negative_amounts"]:
        stats["warnings"].append(
            f"Dropped {stats['negative_amounts']} rows with negative amount."
        )
        df = df[~neg].copy()
    df["amount"] = df["amount"].astype(float)

    # 6. Parse timestamps ──────────────────────────────────────────────────────
    df["timestamp"] = parse_timestamps(df["timestamp"])
    bad_ts = df["timestamp"].isna()
    stats["invalid_timestamps"] = int(bad_ts.sum())
    if stats["invalid_timestamps"]:
        stats["warnings"].append(
            f"Dropped {stats['invalid_timestamps']} rows with unparseable timestamp."
        )
        df = df[~bad_ts].copy()

    # 7. Remove self-transactions ──────────────────────────────────────────────
    self_tx = df["sender_id"] == df["receiver_id"]
    stats["self_transactions"] = int(self_tx.sum())
    if stats["self_transactions"]:
        stats["warnings"].append(
            f"Dropped {stats['self_transactions']} self-transactions."
        )
        df = df[~self_tx].copy()

    # 8. Deduplicate transaction_id ────────────────────────────────────────────
    dups = df.duplicated(subset=["transaction_id"], keep="first")
    stats["duplicate_tx_ids"] = int(dups.sum())
    if stats["duplicate_tx_ids"]:
        stats["warnings"].append(
            f"Dropped {stats['duplicate_tx_ids']} duplicate transaction_id rows."
        )
        df = df[~dups].copy()

    # 9. Row limit ─────────────────────────────────────────────────────────────
    if len(df) > MAX_ROWS:
        stats["warnings"].append(
            f"Dataset truncated from {len(df)} to {MAX_ROWS} rows."
        )
        df = df.head(MAX_ROWS).copy()

    if df.empty:
        raise CSVParseError(
            "No valid rows remain after validation. "
            f"Issues: {'; '.join(stats['warnings']) or 'unknown'}"
        )

    df = df.reset_index(drop=True)
    stats["valid_rows"] = len(df)
    stats["dropped_rows"] = stats["total_rows"] - len(df)
    log.info("Parse complete: %d valid / %d total rows", stats["valid_rows"], stats["total_rows"])
    return df, stats


def to_transactions(df: pd.DataFrame) -> List[Transaction]:
    """Turn a validated DataFrame into immutable Transaction records (row order kept)."""
    return [
        Transaction(
            transaction_id=str(row.transaction_id),
            sender_id=str(row.sender_id),
            receiver_id=str(row.receiver_id),
            amount=float(row.amount),
            timestamp=pd.Timestamp(row.timestamp).to_pydatetime(),
        )
        for row in df[list(REQUIRED_COLUMNS)].itertuples(index=False)
    ]
