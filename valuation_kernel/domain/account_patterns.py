"""
Account pattern primitives shared by the engines and the posting store.

A pattern is a literal account name in which ``*`` stands for "any
remaining characters".  Pure: no ORM, no I/O.
"""

WILDCARD = "*"


def like_prefix(pattern: str) -> str:
    """
    SQL LIKE filter covering every account the pattern can match.

    The literal text before the first wildcard marker becomes an open-ended
    prefix.  ``_`` and ``%`` in account names are left unescaped, which only
    widens the candidate set.
    """
    head, sep, _ = pattern.partition(WILDCARD)
    if not sep:
        return pattern
    return head + "%"
