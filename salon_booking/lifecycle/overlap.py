"""Half-open interval overlap on a single calendar day."""


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Return True iff ``[start_a, end_a)`` and ``[start_b, end_b)`` intersect.

    All values are minutes since midnight. A range ending exactly when the
    other starts does not overlap it.

    Examples:
        >>> overlaps(600, 660, 630, 660)
        True
        >>> overlaps(600, 660, 660, 690)
        False
    """
    return start_a < end_b and start_b < end_a
