"""
Token-sort similarity for free-text references.
"""

import math
import re
from typing import Optional

from rapidfuzz.distance import Levenshtein


_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


class StringSimilarity:
    """
    Token-sort ratio on a 0-100 integer scale.

    Both strings are lowercased, stripped of anything that is not a letter,
    digit or whitespace, split into tokens and re-joined in sorted order, so
    "INV 42 acme" and "Acme-INV 42" compare on the same footing. The ratio is
    one minus the Levenshtein distance over the longer normalized length.
    """

    @staticmethod
    def normalize(text: Optional[str]) -> str:
        if not text:
            return ""
        tokens = _NON_ALNUM.sub("", text.lower()).split()
        return " ".join(sorted(tokens))

    @classmethod
    def ratio(cls, text1: Optional[str], text2: Optional[str]) -> int:
        """Similarity of two references, 0 when either side is empty."""
        if not text1 or not text2:
            return 0

        norm1 = cls.normalize(text1)
        norm2 = cls.normalize(text2)

        if norm1 == norm2:
            return 100
        if not norm1 or not norm2:
            return 0

        distance = Levenshtein.distance(norm1, norm2)
        max_len = max(len(norm1), len(norm2))

        # Half-up rounding
        return int(math.floor((1 - distance / max_len) * 100 + 0.5))

    @classmethod
    def score(cls, text1: Optional[str], text2: Optional[str]) -> float:
        """Similarity scaled to [0, 1]."""
        return cls.ratio(text1, text2) / 100.0
