"""
Audit logging for reconciliation decisions.
"""

from collections import Counter
from typing import List, Optional

import structlog

from ..models import AuditAction, AuditEntry

logger = structlog.get_logger()


class AuditLogger:
    """
    In-memory audit trail of one reconciliation run.
    Every entry is mirrored to structlog at debug level.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self.entries: List[AuditEntry] = []

    def log(self, entry: AuditEntry) -> None:
        """Add an audit entry."""
        self.entries.append(entry)

        logger.debug(
            entry.message,
            job_id=self.job_id,
            action=entry.action.value,
            transaction_ids=entry.transaction_ids,
        )

    def log_many(self, entries: List[AuditEntry]) -> None:
        """Add multiple audit entries."""
        for entry in entries:
            self.log(entry)

    def get_entries(
        self,
        action_filter: Optional[AuditAction] = None,
    ) -> List[AuditEntry]:
        """Get audit entries, optionally only those of one action."""
        if action_filter is None:
            return list(self.entries)
        return [e for e in self.entries if e.action == action_filter]

    def summary(self) -> dict:
        """Get summary statistics of audit log."""
        action_counts = Counter(e.action.value for e in self.entries)

        return {
            "total_entries": len(self.entries),
            "action_counts": dict(action_counts),
        }
