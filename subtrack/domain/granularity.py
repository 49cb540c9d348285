"""
Calendar granularities used by selection and level of detail.

Rank order: day (0) < month (1) < year (2).
"""

KIND_DAY = "day"
KIND_MONTH = "month"
KIND_YEAR = "year"
VALID_KINDS = (KIND_DAY, KIND_MONTH, KIND_YEAR)

_RANKS = {KIND_DAY: 0, KIND_MONTH: 1, KIND_YEAR: 2}


def normalize_kind(kind) -> str:
    """Unknown kinds fall back to day."""
    value = str(kind or "").strip().lower()
    if value in _RANKS:
        return value
    return KIND_DAY


def kind_rank(kind) -> int:
    return _RANKS[normalize_kind(kind)]


def kind_from_rank(rank: int) -> str:
    if rank >= 2:
        return KIND_YEAR
    if rank >= 1:
        return KIND_MONTH
    return KIND_DAY
