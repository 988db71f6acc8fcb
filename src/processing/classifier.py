"""Relevance classifier — deterministic keyword scoring for RFQ emails."""

import logging

from src.gmail.types import NormalizedEmail
from src.processing.terms import DEFAULT_TERM_MODEL
from src.processing.types import (
    BonusScope,
    Category,
    ClassificationResult,
    ComponentScores,
    TermModel,
)

logger = logging.getLogger(__name__)


def _count_matches(terms: tuple[str, ...], text: str) -> int:
    return sum(1 for term in terms if term in text)


def classify(
    text: str,
    subject_text: str,
    model: TermModel = DEFAULT_TERM_MODEL,
) -> ClassificationResult:
    """Score an email's text against a term model.

    `text` is the message content (body and snippet); `subject_text` is the
    subject line.  Both are searched together, and the subject alone is
    searched for subject-scoped bonuses.  Matching is case-insensitive.

    Any auto-accept phrase accepts immediately.  Otherwise each category's
    match count earns tiered points, bonus rules add fixed points, and the
    email is accepted when the total reaches ``model.threshold``.
    """
    subject = subject_text.lower()
    full_text = f"{subject} {text.lower()}"

    for phrase in model.auto_accept:
        if phrase in full_text:
            return ClassificationResult(
                is_accepted=True,
                total_score=0,
                auto_accepted=True,
                reasons=(f"Auto-accept phrase: {phrase!r}",),
            )

    counts: dict[Category, int] = {}
    score = 0
    reasons: list[str] = []
    for category, rule in model.categories.items():
        count = _count_matches(rule.terms, full_text)
        counts[category] = count
        points = rule.points_for(count)
        if points:
            score += points
            reasons.append(f"{category.value} terms: {count} (+{points})")

    bonus_points = 0
    for bonus in model.bonuses:
        scoped = subject if bonus.scope == BonusScope.SUBJECT else full_text
        if any(term in scoped for term in bonus.terms):
            bonus_points += bonus.points
            reasons.append(f"{bonus.name} (+{bonus.points})")
    score += bonus_points

    return ClassificationResult(
        is_accepted=score >= model.threshold,
        total_score=score,
        component_scores=ComponentScores(
            strong_term_count=counts.get(Category.STRONG, 0),
            domain_term_count=counts.get(Category.DOMAIN, 0),
            context_term_count=counts.get(Category.CONTEXT, 0),
            bonus_points=bonus_points,
        ),
        reasons=tuple(reasons),
    )


def classify_email(
    email: NormalizedEmail,
    model: TermModel = DEFAULT_TERM_MODEL,
) -> ClassificationResult:
    """Classify a normalized email on its subject, body and snippet."""
    result = classify(f"{email.body_text} {email.snippet}", email.subject, model)
    logger.debug(
        "email=%s score=%d accepted=%s reasons=%s",
        email.id,
        result.total_score,
        result.is_accepted,
        "; ".join(result.reasons) or "none",
    )
    return result
