"""Fuzzy matching of registry team members to task-tracker users."""

from .resolver import (
    SCORING_RULES,
    IdentityResolver,
    UserMatch,
    find_best_match,
    rank_matches,
)

__all__ = [
    "SCORING_RULES",
    "IdentityResolver",
    "UserMatch",
    "find_best_match",
    "rank_matches",
]
