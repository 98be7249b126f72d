"""
Edit distance between plate codes.
"""

from __future__ import annotations


def levenshtein(a: str, b: str) -> int:
    """
    Classic Levenshtein distance: insertions, deletions and substitutions
    each cost 1.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]
