"""Transaction record model shared by both sides of a reconciliation."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Dict, Any, Union

from .enums import EntryType, PayoutStatus, TransactionSource


TimestampValue = Union[str, datetime, date, None]


class InvalidRecordError(ValueError):
    """Raised when a transaction record cannot be accepted by the engine."""


@dataclass
class TransactionRecord:
    """
    A single payout or ledger entry, already normalized by the upstream parser.
    All monetary amounts are stored in CENTS (integer) to avoid floating point errors.

    Provider specific fields live in ``raw``. The two fields the engine reads
    from it, ``status`` and ``type``, are validated against closed enums at
    construction so that an unknown value fails here instead of silently
    taking the generic amount comparison.
    """
    # Identity
    id: str
    tx_id: Optional[str] = None  # Provider transaction id

    # Financial data (ALL IN CENTS - integers only, signed)
    amount_cents: int = 0
    currency: str = "USD"

    # Temporal
    timestamp: TimestampValue = None

    # Source
    source: TransactionSource = TransactionSource.PAYOUT

    # Matching hints
    reference: Optional[str] = None
    merchant_id: Optional[str] = None

    # Provider payload (status, type, ...)
    raw: Dict[str, Any] = field(default_factory=dict)

    _status: Optional[PayoutStatus] = field(default=None, init=False, repr=False, compare=False)
    _entry_type: Optional[EntryType] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if isinstance(self.amount_cents, bool) or not isinstance(self.amount_cents, int):
            raise InvalidRecordError(
                f"Record {self.id}: amount_cents must be an integer, got {self.amount_cents!r}"
            )

        try:
            self.source = TransactionSource(self.source)
        except ValueError:
            raise InvalidRecordError(
                f"Record {self.id}: unknown source {self.source!r}"
            ) from None

        raw = self.raw or {}
        try:
            self._status = PayoutStatus.parse(raw.get("status"))
        except ValueError:
            raise InvalidRecordError(
                f"Record {self.id}: unknown status {raw.get('status')!r}"
            ) from None
        try:
            self._entry_type = EntryType.parse(raw.get("type"))
        except ValueError:
            raise InvalidRecordError(
                f"Record {self.id}: unknown type {raw.get('type')!r}"
            ) from None

    @property
    def status(self) -> Optional[PayoutStatus]:
        """Provider status, None when the payload has none."""
        return self._status

    @property
    def entry_type(self) -> Optional[EntryType]:
        """Ledger direction, None when the payload has none."""
        return self._entry_type

    @property
    def is_payout(self) -> bool:
        return self.source == TransactionSource.PAYOUT

    @property
    def is_failed(self) -> bool:
        return self._status == PayoutStatus.FAILED

    def reference_startswith(self, prefix: str) -> bool:
        return bool(self.reference) and self.reference.startswith(prefix)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        timestamp = self.timestamp
        if isinstance(timestamp, (datetime, date)):
            timestamp = timestamp.isoformat()

        return {
            "id": self.id,
            "tx_id": self.tx_id,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "timestamp": timestamp,
            "source": self.source.value,
            "reference": self.reference,
            "merchant_id": self.merchant_id,
            "raw": dict(self.raw),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionRecord":
        """Build a record from a plain mapping (e.g. a stored row)."""
        if "id" not in data:
            raise InvalidRecordError("Record is missing an id")

        return cls(
            id=str(data["id"]),
            tx_id=data.get("tx_id") or None,
            amount_cents=data.get("amount_cents", 0),
            currency=data.get("currency") or "USD",
            timestamp=data.get("timestamp"),
            source=data.get("source", TransactionSource.PAYOUT),
            reference=data.get("reference") or None,
            merchant_id=data.get("merchant_id") or None,
            raw=dict(data.get("raw") or {}),
        )
