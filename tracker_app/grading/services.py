"""
Weighted grade aggregation.

Every function here is pure: callers pass in category configuration and raw
scores, and persist whatever comes back themselves.
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import InvalidInputError, OutOfRangeError, UnknownCategoryError
from ..models import DEFAULT_MAX_SCORE

EXPECTED_WEIGHT_TOTAL = 100.0
WEIGHT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class CategoryRule:
    category_id: int
    name: str
    kind: str
    weight: float
    max_score: float = DEFAULT_MAX_SCORE


@dataclass(frozen=True)
class ComponentScore:
    category_id: int
    name: str
    kind: str
    weight: float
    raw_score: float
    max_score: float
    normalized: float
    contribution: float

    def to_dict(self):
        return {
            "category_id": self.category_id,
            "name": self.name,
            "kind": self.kind,
            "weight": self.weight,
            "raw_score": self.raw_score,
            "max_score": self.max_score,
            "normalized": round(self.normalized, 2),
            "contribution": round(self.contribution, 2),
        }


@dataclass(frozen=True)
class FinalScore:
    value: float
    components: Tuple[ComponentScore, ...]

    complete = True

    def subtotal(self, kind: str) -> Optional[float]:
        """Sum of contributions for one category kind, None if the subject has none."""
        parts = [c.contribution for c in self.components if c.kind == kind]
        if not parts:
            return None
        return math.fsum(parts)

    def to_dict(self):
        written = self.subtotal("written")
        performance = self.subtotal("performance")
        return {
            "status": "complete",
            "final_score": format_score(self.value),
            "written_score": format_score(written) if written is not None else None,
            "performance_score": format_score(performance) if performance is not None else None,
            "components": [c.to_dict() for c in self.components],
        }


@dataclass(frozen=True)
class Incomplete:
    """Some weighted categories have no score yet. Not an error."""
    missing_category_ids: Tuple[int, ...]

    complete = False

    def to_dict(self):
        return {
            "status": "incomplete",
            "final_score": None,
            "missing_category_ids": list(self.missing_category_ids),
        }


def format_score(value: float) -> float:
    return round(value, 2)


def as_rule(category) -> CategoryRule:
    """Accepts a CategoryRule or anything shaped like EvaluationCategory."""
    if isinstance(category, CategoryRule):
        return category
    max_score = getattr(category, "max_score", None)
    if max_score is None or max_score <= 0:
        max_score = DEFAULT_MAX_SCORE
    return CategoryRule(
        category_id=category.category_id,
        name=category.name,
        kind=category.kind,
        weight=float(category.weight or 0),
        max_score=float(max_score),
    )


def validate_scores(rules: Iterable[CategoryRule], raw_scores: Mapping) -> Dict[int, float]:
    by_id = {r.category_id: r for r in rules}
    checked = {}
    for category_id, value in raw_scores.items():
        rule = by_id.get(category_id)
        if rule is None:
            raise UnknownCategoryError(category_id)
        try:
            score = float(value)
        except (TypeError, ValueError):
            raise InvalidInputError(f"Score for category {category_id} must be a number.")
        # NaN fails both comparisons
        if not (0 <= score <= rule.max_score):
            raise OutOfRangeError(category_id, score, rule.max_score)
        checked[category_id] = score
    return checked


def compute_final_score(categories, raw_scores: Mapping):
    """
    Compute a subject's final score on a 100 point scale.

    Each raw score is normalized to 100 points and weighted by its category's
    weight in percentage points. Weights are used as configured even when they
    do not add up to 100.

    Returns FinalScore, or Incomplete when a category with weight > 0 has no
    score. Raises UnknownCategoryError / OutOfRangeError on bad input.
    """
    rules = [as_rule(c) for c in categories]
    scores = validate_scores(rules, raw_scores)

    missing = tuple(r.category_id for r in rules if r.weight > 0 and r.category_id not in scores)
    if missing:
        return Incomplete(missing_category_ids=missing)

    components = []
    for rule in rules:
        if rule.category_id not in scores:
            continue
        raw = scores[rule.category_id]
        normalized = raw / rule.max_score * 100
        contribution = normalized * rule.weight / 100
        components.append(
            ComponentScore(
                category_id=rule.category_id,
                name=rule.name,
                kind=rule.kind,
                weight=rule.weight,
                raw_score=raw,
                max_score=rule.max_score,
                normalized=normalized,
                contribution=contribution,
            )
        )

    value = math.fsum(c.contribution for c in components)
    return FinalScore(value=value, components=tuple(components))


def weight_total(categories) -> float:
    return math.fsum(
        float(c.weight or 0) for c in categories if getattr(c, "is_active", True)
    )


def weight_warning(categories) -> Optional[str]:
    total = weight_total(categories)
    if abs(total - EXPECTED_WEIGHT_TOTAL) <= WEIGHT_TOLERANCE:
        return None
    return f"Category weights add up to {total:g}%, not {EXPECTED_WEIGHT_TOTAL:g}%."


def score_trend(current: float, previous: Optional[float]) -> Optional[str]:
    if previous is None:
        return None
    if current > previous:
        return "up"
    if current < previous:
        return "down"
    return "same"


def attach_trends(grades) -> List[Tuple[object, Optional[str]]]:
    """Pair each snapshot with its trend against the previous one of the same subject.

    `grades` must be ordered oldest first.
    """
    last_by_subject = {}
    paired = []
    for g in grades:
        previous = last_by_subject.get(g.subject_id_fk)
        paired.append((g, score_trend(g.final_score, previous)))
        last_by_subject[g.subject_id_fk] = g.final_score
    return paired


def subject_averages(grades) -> Dict[str, Dict[str, float]]:
    totals = {}
    for g in grades:
        name = g.subject.name if g.subject else str(g.subject_id_fk)
        entry = totals.setdefault(name, {"total": 0.0, "count": 0})
        entry["total"] += g.final_score
        entry["count"] += 1
    return {
        name: {"average": round(v["total"] / v["count"], 1), "count": v["count"]}
        for name, v in sorted(totals.items())
    }
