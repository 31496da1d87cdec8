from __future__ import annotations

from typing import Optional, Sequence

# Labels mentioning current prices are preferred
NOMINAL_MARKERS = ("corrente", "preços correntes", "nominal")

# Labels that look deflated / constant-price
REAL_MARKERS = ("real", "deflator", "2023", "preços de 2023")


def _lower(label: object) -> str:
    return str(label or "").lower()


def pick_nominal_series(labels: Sequence[str]) -> Optional[str]:
    """
    Choose the single series used for the whole session.

    Precedence:
      1. first label mentioning current prices / nominal values
      2. else first label that does not look deflated or real
      3. else the first label

    Returns None when no labels are given.
    """
    for label in labels:
        text = _lower(label)
        if any(m in text for m in NOMINAL_MARKERS):
            return label

    for label in labels:
        text = _lower(label)
        if not any(m in text for m in REAL_MARKERS):
            return label

    return labels[0] if labels else None
