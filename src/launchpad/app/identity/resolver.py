"""Identity resolution: registry display names to task-tracker users.

Scoring is an ordered rule table.  A candidate is scored by the first
rule that matches it; rules are ordered so the first match is also the
highest applicable score.

  exact       case-insensitive equality                        100
  all_tokens  every search token is a substring of the name    80 + 10 * ratio
  first_last  first tokens share a prefix, last tokens equal   70
  partial     any search token longer than 2 chars is a substring  50

``all_tokens`` can exceed 100 when the search name has more tokens than
the candidate, so exact matches form their own tier ahead of all scores.
Ties keep the earlier candidate.  Scores below ``MIN_SCORE`` are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from ..models import TeamMember

logger = logging.getLogger(__name__)

MIN_SCORE = 50.0


@dataclass(frozen=True, slots=True)
class UserMatch:
    user: Mapping[str, Any]
    score: float
    rule: str
    index: int
    """Position of the candidate in the input sequence."""

    @property
    def user_id(self) -> str | None:
        return self.user.get("gid")

    @property
    def exact(self) -> bool:
        return self.rule == "exact"


def _tokens(text: str) -> list[str]:
    return text.split()


def _score_exact(search: str, candidate: str) -> float | None:
    return 100.0 if candidate == search else None


def _score_all_tokens(search: str, candidate: str) -> float | None:
    search_tokens = _tokens(search)
    candidate_tokens = _tokens(candidate)
    if not search_tokens or not candidate_tokens:
        return None
    if all(token in candidate for token in search_tokens):
        return 80.0 + 10.0 * (len(search_tokens) / len(candidate_tokens))
    return None


def _score_first_last(search: str, candidate: str) -> float | None:
    search_tokens = _tokens(search)
    candidate_tokens = _tokens(candidate)
    if len(search_tokens) < 2 or len(candidate_tokens) < 2:
        return None
    first_s, first_c = search_tokens[0], candidate_tokens[0]
    if not (first_c.startswith(first_s) or first_s.startswith(first_c)):
        return None
    if search_tokens[-1] != candidate_tokens[-1]:
        return None
    return 70.0


def _score_partial(search: str, candidate: str) -> float | None:
    if any(len(token) > 2 and token in candidate for token in _tokens(search)):
        return 50.0
    return None


Scorer = Callable[[str, str], float | None]

SCORING_RULES: tuple[tuple[str, Scorer], ...] = (
    ("exact", _score_exact),
    ("all_tokens", _score_all_tokens),
    ("first_last", _score_first_last),
    ("partial", _score_partial),
)


def _score(search: str, candidate: str) -> tuple[str, float] | None:
    for rule, scorer in SCORING_RULES:
        score = scorer(search, candidate)
        if score is not None:
            return rule, score
    return None


def rank_matches(
    name: str, candidates: Sequence[Mapping[str, Any]],
) -> list[UserMatch]:
    """Return candidates scoring at least MIN_SCORE, best first.

    Candidates are mappings with a ``name`` key (task-tracker users).
    Ordering: exact matches, then score descending, then input order.
    """
    search = (name or "").lower().strip()
    if not search:
        return []

    matches: list[UserMatch] = []
    for index, user in enumerate(candidates):
        candidate = (user.get("name") or "").lower().strip()
        if not candidate:
            continue
        scored = _score(search, candidate)
        if scored is None:
            continue
        rule, score = scored
        if score < MIN_SCORE:
            continue
        matches.append(UserMatch(user=user, score=score, rule=rule, index=index))

    matches.sort(key=lambda m: (not m.exact, -m.score, m.index))
    return matches


def find_best_match(
    name: str, candidates: Sequence[Mapping[str, Any]],
) -> UserMatch | None:
    ranked = rank_matches(name, candidates)
    return ranked[0] if ranked else None


class IdentityResolver:
    """Resolve registry team members to task-tracker user ids.

    Workspace users are fetched once per instance.  Member ids unknown to
    the registry listing, or names with no acceptable match, resolve to
    None; the caller leaves the corresponding assignee empty.
    """

    def __init__(
        self,
        task_client: Any,
        workspace_id: str,
        members: Sequence[TeamMember] = (),
    ) -> None:
        self._client = task_client
        self._workspace_id = workspace_id
        self._members = {m.id: m for m in members}
        self._users: list[dict[str, Any]] | None = None
        self._cache: dict[str, str | None] = {}

    async def users(self) -> list[dict[str, Any]]:
        if self._users is None:
            self._users = await self._client.list_workspace_users(self._workspace_id)
            logger.debug(
                "Loaded %d task-tracker users for workspace %s",
                len(self._users),
                self._workspace_id,
            )
        return self._users

    def member_name(self, member_id: str | None) -> str | None:
        if not member_id:
            return None
        member = self._members.get(member_id)
        return member.name if member else None

    async def resolve_name(self, name: str | None) -> str | None:
        if not name:
            return None
        if name in self._cache:
            return self._cache[name]
        match = find_best_match(name, await self.users())
        user_id = match.user_id if match else None
        if match is None:
            logger.info("No task-tracker user matches %r", name)
        else:
            logger.debug(
                "Matched %r to %r (rule=%s score=%.1f)",
                name,
                match.user.get("name"),
                match.rule,
                match.score,
            )
        self._cache[name] = user_id
        return user_id

    async def resolve_member(self, member_id: str | None) -> str | None:
        return await self.resolve_name(self.member_name(member_id))
