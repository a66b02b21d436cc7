"""
dimensions.py — VFM Dimension Calculators.

Scores a procurement record on the four value-for-money axes. Each
dimension aggregates three weighted factors:

    Economy        — price competitiveness, cost structure, life-cycle cost
    Efficiency     — procurement timeline, resource utilization, process
    Effectiveness  — quality standards, service delivery, outcomes
    Equity         — local content, geographic distribution, inclusion

Factor scores start from fixed baselines and are moved only by record
fields that carry a real signal (market benchmark, award lead time, local
supplier). Dimension score = weight-normalised sum, rounded half-up to an
integer and clamped to [0, 100].
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import numpy as np

from vfm_audit.models import Dimension, Factor, ProcurementRecord

logger = logging.getLogger(__name__)

DIMENSIONS = ("economy", "efficiency", "effectiveness", "equity")
DEFAULT_DIMENSION_WEIGHTS = {name: 0.25 for name in DIMENSIONS}

# Price competitiveness adjustments (score points)
PRICE_BASELINE = 75.0
PRICE_MAX_BONUS = 20.0
PRICE_MAX_PENALTY = 30.0

# Procurement timeline adjustments
TIMELINE_BASELINE = 80.0
TIMELINE_SLOW_DAYS = 90
TIMELINE_SLOW_MAX_PENALTY = 15.0
TIMELINE_FAST_DAYS = 20
TIMELINE_FAST_MAX_PENALTY = 10.0

LOCAL_SUPPLIER_SCORE = 85.0
FOREIGN_SUPPLIER_SCORE = 60.0


def round_half_up(value: float, places: int = 0) -> float:
    """Round to `places` decimals with ties going away from zero."""
    quantum = Decimal(1).scaleb(-places)
    # Snap float noise first: 70.49999999999999 must round as 70.5
    snapped = Decimal(str(round(value, 9)))
    return float(snapped.quantize(quantum, rounding=ROUND_HALF_UP))


def _clamp(score: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, score))


# ---------------------------------------------------------------------------
# Scoring primitives
# ---------------------------------------------------------------------------

def price_competitiveness_score(record: ProcurementRecord) -> float:
    """Score contract price against the market benchmark.

    Starts at 75. A contract priced below benchmark gains one point per
    percent of discount (capped at +20); above benchmark loses one point per
    percent of premium (capped at -30). A missing or zero benchmark leaves the
    baseline unchanged.

    Args:
        record: Validated procurement record.

    Returns:
        Float score in range [45, 95].
    """
    benchmark = record.market_price_benchmark
    if not benchmark:
        return PRICE_BASELINE

    gap_pct = (benchmark - record.value) / benchmark * 100
    if gap_pct > 0:
        return round(PRICE_BASELINE + min(PRICE_MAX_BONUS, gap_pct), 2)
    return round(PRICE_BASELINE - min(PRICE_MAX_PENALTY, -gap_pct), 2)


def is_timeline_anomaly(record: ProcurementRecord) -> bool:
    """True when the award followed publication unusually fast."""
    days = record.award_lead_days
    return days is not None and days < TIMELINE_FAST_DAYS


def timeline_score(record: ProcurementRecord) -> float:
    """Score the publication-to-award lead time.

    Baseline 80. Beyond 90 days the score drops linearly, reaching the full
    15-point penalty at 180 days. Under 20 days the score also drops, up to
    10 points for a same-day award.

    Args:
        record: Validated procurement record.

    Returns:
        Float score in range [65, 80].
    """
    days = record.award_lead_days
    if days is None:
        return TIMELINE_BASELINE

    if days > TIMELINE_SLOW_DAYS:
        overrun = (days - TIMELINE_SLOW_DAYS) / TIMELINE_SLOW_DAYS
        penalty = min(TIMELINE_SLOW_MAX_PENALTY, overrun * TIMELINE_SLOW_MAX_PENALTY)
        return round(TIMELINE_BASELINE - penalty, 2)
    if days < TIMELINE_FAST_DAYS:
        shortfall = (TIMELINE_FAST_DAYS - days) / TIMELINE_FAST_DAYS
        penalty = min(TIMELINE_FAST_MAX_PENALTY, shortfall * TIMELINE_FAST_MAX_PENALTY)
        return round(TIMELINE_BASELINE - penalty, 2)
    return TIMELINE_BASELINE


def local_content_score(record: ProcurementRecord) -> float:
    return LOCAL_SUPPLIER_SCORE if record.is_local_supplier else FOREIGN_SUPPLIER_SCORE


def dimension_score(factors: tuple[Factor, ...]) -> float:
    """Weight-normalised factor average, rounded half-up and clamped.

    Args:
        factors: Factors of one dimension; weights need not sum to 1.

    Returns:
        Integer-valued float score in range [0, 100].
    """
    scores = np.array([f.score for f in factors], dtype=float)
    weights = np.array([f.weight for f in factors], dtype=float)
    if weights.sum() <= 0:
        return 0.0
    mean = float(np.average(scores, weights=weights))
    return _clamp(round_half_up(mean))


def _dimension(factors: list[Factor]) -> Dimension:
    factors = tuple(factors)
    return Dimension(score=dimension_score(factors), factors=factors)


def _money(record: ProcurementRecord, amount: float) -> str:
    return f"{record.currency} {amount:,.0f}"


# ---------------------------------------------------------------------------
# Dimension calculators
# ---------------------------------------------------------------------------

def economy(record: ProcurementRecord) -> Dimension:
    price = price_competitiveness_score(record)
    benchmark = record.market_price_benchmark

    if not benchmark:
        price_analysis = (
            f"No market price benchmark recorded for this {record.category.value} "
            f"contract of {_money(record, record.value)}; baseline score applied."
        )
        price_recs = (
            "Record a market price benchmark before award",
            "Implement regular market price updates",
        )
    elif record.value <= benchmark:
        discount = (benchmark - record.value) / benchmark * 100
        price_analysis = (
            f"Contract value {_money(record, record.value)} is {discount:.1f}% "
            f"below the market benchmark of {_money(record, benchmark)}."
        )
        price_recs = (
            "Document the pricing approach for reuse in similar tenders",
            "Consider bulk purchasing",
        )
    else:
        premium = (record.value - benchmark) / benchmark * 100
        price_analysis = (
            f"Contract value {_money(record, record.value)} is {premium:.1f}% "
            f"above the market benchmark of {_money(record, benchmark)}."
        )
        price_recs = (
            "Require written justification for the price premium",
            "Renegotiate or re-tender against the benchmark",
            "Implement regular market price updates",
        )

    return _dimension([
        Factor(
            factor="Price Competitiveness",
            score=price,
            weight=0.4,
            analysis=price_analysis,
            recommendations=price_recs,
        ),
        Factor(
            factor="Cost Structure",
            score=70.0,
            weight=0.3,
            analysis=(
                f"Breakdown of costs and overhead allocations for "
                f"{record.procurement_method.value.replace('_', ' ').lower()}; "
                "no itemised cost data available."
            ),
            recommendations=(
                "Request detailed cost breakdowns",
                "Challenge indirect costs",
            ),
        ),
        Factor(
            factor="Life-Cycle Cost",
            score=65.0,
            weight=0.3,
            analysis="Total cost of ownership including maintenance and disposal.",
            recommendations=(
                "Include maintenance costs in evaluation",
                "Consider energy efficiency",
            ),
        ),
    ])


def efficiency(record: ProcurementRecord) -> Dimension:
    days = record.award_lead_days
    if days is None:
        timeline_analysis = "Contract not yet awarded; baseline timeline score applied."
        timeline_recs = ("Track award milestones against the tender plan",)
    elif days > TIMELINE_SLOW_DAYS:
        timeline_analysis = (
            f"Award took {days} days from publication, beyond the "
            f"{TIMELINE_SLOW_DAYS}-day standard timeline."
        )
        timeline_recs = (
            "Streamline approval processes",
            "Use e-procurement systems",
        )
    elif days < TIMELINE_FAST_DAYS:
        timeline_analysis = (
            f"Award followed publication after only {days} days; "
            "timeline anomaly flagged for compliance review."
        )
        timeline_recs = (
            "Verify the minimum bidding period was observed",
            "Review evaluation records for the accelerated award",
        )
    else:
        timeline_analysis = (
            f"Award took {days} days from publication, within the standard timeline."
        )
        timeline_recs = ("Maintain current approval turnaround",)

    return _dimension([
        Factor(
            factor="Procurement Timeline",
            score=timeline_score(record),
            weight=0.3,
            analysis=timeline_analysis,
            recommendations=timeline_recs,
        ),
        Factor(
            factor="Resource Utilization",
            score=75.0,
            weight=0.4,
            analysis="Use of financial and human resources during the procurement.",
            recommendations=(
                "Implement resource tracking",
                "Optimize team structures",
            ),
        ),
        Factor(
            factor="Process Efficiency",
            score=70.0,
            weight=0.3,
            analysis=(
                f"Effectiveness of the "
                f"{record.procurement_method.value.replace('_', ' ').lower()} process."
            ),
            recommendations=(
                "Automate routine tasks",
                "Standardize procedures",
            ),
        ),
    ])


def effectiveness(record: ProcurementRecord) -> Dimension:
    # Fixed baselines: no outcome-tracking input exists yet
    category = record.category.value.replace("_", " ").lower()
    return _dimension([
        Factor(
            factor="Quality Standards",
            score=85.0,
            weight=0.4,
            analysis=f"Meeting specified quality requirements for {category}.",
            recommendations=(
                "Implement quality assurance",
                "Regular performance monitoring",
            ),
        ),
        Factor(
            factor="Service Delivery",
            score=80.0,
            weight=0.3,
            analysis="Timeliness and reliability of delivery against the contract.",
            recommendations=(
                "Set clear delivery milestones",
                "Implement penalty clauses",
            ),
        ),
        Factor(
            factor="Outcome Achievement",
            score=75.0,
            weight=0.3,
            analysis="Achievement of intended project outcomes.",
            recommendations=(
                "Define measurable outcomes",
                "Regular outcome reviews",
            ),
        ),
    ])


def equity(record: ProcurementRecord) -> Dimension:
    if record.is_local_supplier:
        local_analysis = (
            f"Awarded to a local supplier"
            f"{' (' + record.supplier + ')' if record.supplier else ''}."
        )
        local_recs = ("Support local supplier development",)
    else:
        country = record.supplier_country or "an unrecorded country"
        local_analysis = f"Supplier is not local (based in {country})."
        local_recs = (
            "Increase local content requirements",
            "Support local supplier development",
        )

    return _dimension([
        Factor(
            factor="Local Content",
            score=local_content_score(record),
            weight=0.4,
            analysis=local_analysis,
            recommendations=local_recs,
        ),
        Factor(
            factor="Geographic Distribution",
            score=75.0,
            weight=0.3,
            analysis="Fair distribution of contract benefits across regions.",
            recommendations=(
                "Consider regional balance",
                "Support underserved areas",
            ),
        ),
        Factor(
            factor="Inclusive Procurement",
            score=70.0,
            weight=0.3,
            analysis="Inclusion of SMEs and disadvantaged groups.",
            recommendations=(
                "Set SME participation targets",
                "Provide capacity building",
            ),
        ),
    ])


CALCULATORS = {
    "economy": economy,
    "efficiency": efficiency,
    "effectiveness": effectiveness,
    "equity": equity,
}


def score_dimensions(record: ProcurementRecord) -> dict[str, Dimension]:
    """Run all four dimension calculators on a record."""
    dimensions = {name: CALCULATORS[name](record) for name in DIMENSIONS}
    logger.debug(
        "Dimension scores for '%s': %s",
        record.title,
        " | ".join(f"{name} {d.score:.0f}" for name, d in dimensions.items()),
    )
    return dimensions


def overall_score(
    scores: dict[str, float],
    weights: Optional[dict[str, float]] = None,
) -> float:
    """Weighted mean of the four dimension scores, rounded to 2 decimals.

    Args:
        scores: Dimension name -> score in [0, 100].
        weights: Dimension name -> weight; defaults to 0.25 each.

    Returns:
        Float score in range [0, 100].
    """
    weights = weights or DEFAULT_DIMENSION_WEIGHTS
    total = sum(scores[name] * weights[name] for name in DIMENSIONS)
    return _clamp(round(total, 2))


def validate_weights(weights: dict[str, float]) -> dict[str, float]:
    """Check custom dimension weights.

    Raises:
        ValueError: If the keys are not the four dimensions, a weight is
            negative, or the weights do not sum to 1.0.
    """
    if set(weights) != set(DIMENSIONS):
        raise ValueError(
            f"Dimension weights must name exactly {sorted(DIMENSIONS)}, got {sorted(weights)}"
        )
    negative = {k: v for k, v in weights.items() if v < 0}
    if negative:
        raise ValueError(f"Dimension weights must be non-negative: {negative}")
    total = sum(weights.values())
    if abs(total - 1.0) > 1e-6:
        raise ValueError(f"Dimension weights must sum to 1.0, got {total:.6f}")
    return {name: float(weights[name]) for name in DIMENSIONS}
