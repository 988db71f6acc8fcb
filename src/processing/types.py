"""Types for the relevance classification pipeline."""

from dataclasses import dataclass, field
from enum import Enum


class Category(str, Enum):
    """Term categories that contribute tiered points to a relevance score."""

    STRONG = "strong"     # commercial-request language
    DOMAIN = "domain"     # HVAC / MEP subject-matter vocabulary
    CONTEXT = "context"   # facility / project vocabulary


class BonusScope(str, Enum):
    """Which text a bonus rule inspects."""

    SUBJECT = "subject"
    TEXT = "text"         # subject + body + snippet


# ── Term model ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CategoryRule:
    """Terms for one category plus its points ladder.

    ``tiers`` holds ``(min_count, points)`` pairs, highest ``min_count`` first;
    the first tier whose ``min_count`` the match count reaches is awarded.
    No match awards nothing.
    """

    terms: tuple[str, ...]
    tiers: tuple[tuple[int, int], ...]

    def points_for(self, count: int) -> int:
        for min_count, points in self.tiers:
            if count >= min_count:
                return points
        return 0


@dataclass(frozen=True)
class BonusRule:
    """Fixed points awarded once when any term appears in the scoped text."""

    name: str
    terms: tuple[str, ...]
    points: int
    scope: BonusScope = BonusScope.TEXT


@dataclass(frozen=True)
class TermModel:
    """Declarative scoring table consumed by ``classify``."""

    auto_accept: tuple[str, ...]
    categories: dict[Category, CategoryRule]
    bonuses: tuple[BonusRule, ...]
    threshold: int = 3


# ── Classification result ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ComponentScores:
    """Per-category match counts plus the summed bonus points."""

    strong_term_count: int = 0
    domain_term_count: int = 0
    context_term_count: int = 0
    bonus_points: int = 0


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of scoring one email.

    An auto-accepted email skips scoring entirely: ``total_score`` stays 0 and
    ``reasons`` names the phrase that triggered it.
    """

    is_accepted: bool
    total_score: int
    component_scores: ComponentScores = field(default_factory=ComponentScores)
    auto_accepted: bool = False
    reasons: tuple[str, ...] = ()
