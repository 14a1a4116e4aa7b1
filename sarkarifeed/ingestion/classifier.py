"""
Content Classifier
==================

Keyword classification of feed items into content kinds.

Rules are evaluated in table order and the first match wins, so an item
mentioning both a recruitment and a result is filed as a job. Title
keywords match as case-insensitive substrings; category tags must match a
rule's tag exactly (ignoring case and surrounding whitespace).
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

from ..database.models import ContentKind


@dataclass(frozen=True)
class ClassificationRule:
    """Keywords and tags that identify one content kind."""

    kind: ContentKind
    title_keywords: Tuple[str, ...]
    tags: FrozenSet[str]

    def matches(self, title: str, tags: FrozenSet[str]) -> bool:
        """Check a lower-cased title and normalized tag set against this rule."""
        if any(keyword in title for keyword in self.title_keywords):
            return True
        return not self.tags.isdisjoint(tags)


CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule(
        kind=ContentKind.JOB,
        title_keywords=("vacancy", "recruitment", "job"),
        tags=frozenset({"jobs", "vacancies", "recruitment"}),
    ),
    ClassificationRule(
        kind=ContentKind.RESULT,
        title_keywords=("result", "score", "merit list"),
        tags=frozenset({"results", "scores"}),
    ),
    ClassificationRule(
        kind=ContentKind.ADMISSION,
        title_keywords=("admission", "application", "course"),
        tags=frozenset({"admissions", "education"}),
    ),
)


def normalize_tags(category_tags: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(
        tag.strip().lower() for tag in (category_tags or ()) if tag and tag.strip()
    )


def classify(
    title: Optional[str],
    category_tags: Optional[Iterable[str]] = None,
    rules: Tuple[ClassificationRule, ...] = CLASSIFICATION_RULES,
) -> ContentKind:
    """Classify an item by its title and category tags.

    Args:
        title: Item title
        category_tags: Category tags attached to the item
        rules: Ordered rule table; defaults to the built-in rules

    Returns:
        The kind of the first matching rule, or ``ContentKind.UNKNOWN``
    """
    lowered_title = (title or "").lower()
    tags = normalize_tags(category_tags)

    for rule in rules:
        if rule.matches(lowered_title, tags):
            return rule.kind

    return ContentKind.UNKNOWN
