"""Utility modules."""

from .text_similarity import StringSimilarity
from .temporal import TemporalComparator
from .audit_logger import AuditLogger

__all__ = ["StringSimilarity", "TemporalComparator", "AuditLogger"]
