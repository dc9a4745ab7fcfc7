"""Pattern matching logic for permissions."""

import re
from functools import lru_cache

WILDCARD_CHARS = ("*", "?")

# Specificity classes, highest wins
SPECIFICITY_WILDCARD = 0
SPECIFICITY_GLOB = 1
SPECIFICITY_EXACT = 2


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    normalized = (pattern or "").strip()
    if not normalized or normalized == "*":
        return re.compile(r"^.*$", re.DOTALL)
    parts = []
    for ch in normalized:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", re.DOTALL)


def match_pattern(pattern: str, value: str) -> bool:
    """
    Check if a value matches a wildcard pattern.

    Supports:
    - Exact matches: "git status" matches "git status"
    - Wildcards: "git *" matches "git status", "git commit", etc.
    - Globs: "src/*.py" matches "src/main.py"; "?" matches one character
    - "*" or an empty pattern matches everything

    Args:
        pattern: The pattern to match against
        value: The value to check

    Returns:
        True if value matches pattern, False otherwise
    """
    return bool(_compile(pattern).match(value or ""))


def specificity(pattern: str) -> tuple[int, int]:
    """
    Rank a pattern for most-specific-match selection.

    Returns:
        (class, literal length) where class is exact > glob > "*"
    """
    normalized = (pattern or "").strip()
    if not normalized or normalized == "*":
        return (SPECIFICITY_WILDCARD, 0)
    literal = sum(1 for ch in normalized if ch not in WILDCARD_CHARS)
    if any(ch in normalized for ch in WILDCARD_CHARS):
        return (SPECIFICITY_GLOB, literal)
    return (SPECIFICITY_EXACT, literal)
