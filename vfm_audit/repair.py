"""
repair.py — Collaborator response parsing and per-field repair.

parse_response() turns the raw completion into a JSON object or raises
ResponseParseError; the auditor then discards the response entirely.

repair_result() walks the parsed object field by field. Every field that is
missing or out of range is replaced by the deterministic value for that
field alone:

    dimension score     must be a number in [0, 100]
    dimension factors   exactly three, scores in [0, 100], weights in [0, 1]
                        summing to 1.0 +/- WEIGHT_TOLERANCE
    savings amounts     non-negative numbers; realized is always 0
    savings categories  kept only when they sum to the final identified amount
                        (+/- CATEGORY_SUM_TOLERANCE), otherwise rebuilt from it
    risk levels         LOW | MEDIUM | HIGH | CRITICAL; exactly three factors
    recommendations     exactly one each of HIGH, MEDIUM, LOW, reordered HIGH first

The overall score is always recomputed from the final dimension scores.
"""

import json
import logging
import math
from typing import Any, Optional

from vfm_audit.dimensions import DIMENSIONS, overall_score
from vfm_audit.models import (
    PRIORITY_ORDER,
    Dimension,
    Factor,
    Priority,
    ProcurementRecord,
    Recommendation,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    Savings,
    SavingsCategory,
    VFMAuditResult,
)
from vfm_audit.recommendations import generate_recommendations
from vfm_audit.savings import savings_categories

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 0.01
CATEGORY_SUM_TOLERANCE = 1.0
FACTORS_PER_DIMENSION = 3
RISK_FACTOR_COUNT = 3
RECOMMENDATION_PRIORITIES = (Priority.HIGH, Priority.MEDIUM, Priority.LOW)
# Reported overall scores further than this from the recomputed mean count as a repair
OVERALL_SCORE_TOLERANCE = 0.5


class ResponseParseError(ValueError):
    """Raised when a collaborator response is not a JSON object."""


def parse_response(text: str) -> dict[str, Any]:
    """Extract the JSON object from a collaborator completion.

    Markdown code fences around the payload are tolerated.

    Raises:
        ResponseParseError: If the text is empty, not JSON, or not an object.
    """
    if not text or not text.strip():
        raise ResponseParseError("Empty collaborator response")

    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
        text = text.strip()

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ResponseParseError(f"Collaborator response is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ResponseParseError(
            f"Collaborator response is a {type(payload).__name__}, expected an object"
        )
    return payload


# ---------------------------------------------------------------------------
# Field validators: each returns None when the raw value is unusable
# ---------------------------------------------------------------------------

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _score(value: Any) -> Optional[float]:
    number = _number(value)
    if number is None or not 0 <= number <= 100:
        return None
    return number


def _amount(value: Any) -> Optional[float]:
    number = _number(value)
    if number is None or number < 0:
        return None
    return number


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def _strings(value: Any) -> Optional[tuple[str, ...]]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return None
    return tuple(value)


def _enum(enum_cls: type, value: Any):
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        return None


def _factors(raw: Any) -> Optional[tuple[Factor, ...]]:
    if not isinstance(raw, list) or len(raw) != FACTORS_PER_DIMENSION:
        return None
    factors = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        name = _text(item.get("factor"))
        score = _score(item.get("score"))
        weight = _number(item.get("weight"))
        analysis = _text(item.get("analysis"))
        recs = _strings(item.get("recommendations"))
        if None in (name, score, weight, analysis, recs) or not 0 <= weight <= 1:
            return None
        factors.append(
            Factor(factor=name, score=score, weight=weight, analysis=analysis, recommendations=recs)
        )
    if abs(sum(f.weight for f in factors) - 1.0) > WEIGHT_TOLERANCE:
        return None
    return tuple(factors)


def _savings_categories(raw: Any) -> Optional[tuple[SavingsCategory, ...]]:
    if not isinstance(raw, list) or not raw:
        return None
    categories = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        fields = (
            _text(item.get("type")),
            _amount(item.get("amount")),
            _text(item.get("justification")),
            _text(item.get("implementation")),
        )
        if None in fields:
            return None
        categories.append(SavingsCategory(*fields))
    return tuple(categories)


def _risk_factors(raw: Any) -> Optional[tuple[RiskFactor, ...]]:
    if not isinstance(raw, list) or len(raw) != RISK_FACTOR_COUNT:
        return None
    factors = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        fields = (
            _text(item.get("risk")),
            _enum(RiskLevel, item.get("level")),
            _text(item.get("impact")),
            _text(item.get("mitigation")),
        )
        if None in fields:
            return None
        factors.append(RiskFactor(*fields))
    return tuple(factors)


def _recommendations(raw: Any) -> Optional[tuple[Recommendation, ...]]:
    if not isinstance(raw, list) or len(raw) != len(RECOMMENDATION_PRIORITIES):
        return None
    recs = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        priority = _enum(Priority, item.get("priority"))
        category = _text(item.get("category"))
        text = _text(item.get("recommendation"))
        implementation = _text(item.get("implementation"))
        timeline = _text(item.get("timeline"))
        if None in (priority, category, text, implementation, timeline):
            return None
        expected = item.get("expectedSavings")
        if expected is not None:
            expected = _amount(expected)
            if expected is None:
                return None
        recs.append(
            Recommendation(
                priority=priority,
                category=category,
                recommendation=text,
                implementation=implementation,
                timeline=timeline,
                expected_savings=expected,
            )
        )
    recs.sort(key=lambda r: PRIORITY_ORDER[r.priority])
    if tuple(r.priority for r in recs) != RECOMMENDATION_PRIORITIES:
        return None
    return tuple(recs)


# ---------------------------------------------------------------------------
# Section repair
# ---------------------------------------------------------------------------

def _repair_dimension(
    name: str,
    raw: Any,
    fallback: Dimension,
    repaired: list[str],
) -> Dimension:
    if not isinstance(raw, dict):
        repaired.append(name)
        return fallback

    score = _score(raw.get("score"))
    if score is None:
        repaired.append(f"{name}.score")
        score = fallback.score

    factors = _factors(raw.get("factors"))
    if factors is None:
        repaired.append(f"{name}.factors")
        factors = fallback.factors

    return Dimension(score=score, factors=factors)


def _repair_savings(
    raw: Any,
    fallback: Savings,
    repaired: list[str],
) -> Savings:
    if not isinstance(raw, dict):
        repaired.append("savings")
        return fallback

    identified = _amount(raw.get("identified"))
    if identified is None:
        repaired.append("savings.identified")
        identified = fallback.identified

    potential = _amount(raw.get("potential"))
    if potential is None:
        repaired.append("savings.potential")
        potential = fallback.potential

    if raw.get("realized") not in (None, 0):
        repaired.append("savings.realized")

    categories = _savings_categories(raw.get("categories"))
    if (
        categories is None
        or abs(sum(c.amount for c in categories) - identified) > CATEGORY_SUM_TOLERANCE
    ):
        repaired.append("savings.categories")
        categories = savings_categories(identified)

    return Savings(
        identified=identified,
        potential=potential,
        categories=categories,
        realized=0.0,
    )


def _repair_risk(
    raw: Any,
    fallback: RiskAssessment,
    repaired: list[str],
) -> RiskAssessment:
    if not isinstance(raw, dict):
        repaired.append("riskAssessment")
        return fallback

    overall = _enum(RiskLevel, raw.get("overall"))
    if overall is None:
        repaired.append("riskAssessment.overall")
        overall = fallback.overall

    factors = _risk_factors(raw.get("factors"))
    if factors is None:
        repaired.append("riskAssessment.factors")
        factors = fallback.factors

    return RiskAssessment(overall=overall, factors=factors)


def repair_result(
    payload: dict[str, Any],
    fallback: VFMAuditResult,
    record: ProcurementRecord,
    weights: dict[str, float],
) -> tuple[VFMAuditResult, list[str]]:
    """Validate a parsed collaborator payload and patch invalid fields.

    Args:
        payload: Parsed JSON object from parse_response().
        fallback: Deterministic audit of the same record.
        record: The audited record (for savings-dependent templates).
        weights: Dimension weights used to recompute the overall score.

    Returns:
        Tuple of:
            result    — repaired VFMAuditResult
            repaired  — dotted names of every substituted field
    """
    repaired: list[str] = []

    dimensions = {
        name: _repair_dimension(name, payload.get(name), getattr(fallback, name), repaired)
        for name in DIMENSIONS
    }
    savings = _repair_savings(payload.get("savings"), fallback.savings, repaired)
    risk = _repair_risk(payload.get("riskAssessment"), fallback.risk_assessment, repaired)

    recommendations = _recommendations(payload.get("recommendations"))
    if recommendations is None:
        repaired.append("recommendations")
        recommendations = generate_recommendations(record, savings.potential)

    overall = overall_score({k: d.score for k, d in dimensions.items()}, weights)
    reported = _number(payload.get("overallScore"))
    if reported is None or abs(reported - overall) > OVERALL_SCORE_TOLERANCE:
        repaired.append("overallScore")

    for name in repaired:
        logger.debug("Repaired collaborator field '%s' for '%s'", name, record.title)

    result = VFMAuditResult(
        overall_score=overall,
        economy=dimensions["economy"],
        efficiency=dimensions["efficiency"],
        effectiveness=dimensions["effectiveness"],
        equity=dimensions["equity"],
        savings=savings,
        risk_assessment=risk,
        recommendations=recommendations,
        source="repaired" if repaired else "collaborator",
    )
    return result, repaired
