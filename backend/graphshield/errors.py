"""
errors.py – Exception types raised by the ingestion layer and detection core.

Both concrete errors subclass ValueError so the API layer can map them to a
422 the same way it maps any other bad-input error.
"""


class GraphShieldError(Exception):
    """Base class for all GraphShield errors."""


class InvalidTransactionError(GraphShieldError, ValueError):
    """A transaction reaching the graph builder violates the input contract."""

    def __init__(self, transaction_id, reason: str):
        self.transaction_id = transaction_id
        self.reason = reason
        super().__init__(f"Invalid transaction {transaction_id!r}: {reason}")


class CSVParseError(GraphShieldError, ValueError):
    """The uploaded CSV cannot be turned into a usable transaction list."""
