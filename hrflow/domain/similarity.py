"""String similarity scoring for fuzzy name matching.

Pure Python, no framework dependencies.
"""


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings (two-row dynamic programming)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Return a case-insensitive similarity score in [0, 1].

    Equal strings score 1. A string contained in the other scores
    0.8 plus a bonus scaled by the length ratio. Anything else falls
    back to normalized edit distance.
    """
    a = (a or "").lower()
    b = (b or "").lower()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    if a in b or b in a:
        shorter, longer = sorted((len(a), len(b)))
        return 0.8 + 0.2 * (shorter / longer)
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))
