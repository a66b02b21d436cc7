"""
savings.py — Savings Estimator.

Identified savings come straight from record fields:
    - 80% of any discount against the market price benchmark
    - 5% of value when the supplier is local
    - 3% of value when more than three bids were received

Potential savings are forward-looking:
    - 5% negotiation potential on contracts above 1,000,000
    - 8% consolidation potential for IT and vehicle categories
    - 2% timeline optimisation when award took longer than 90 days

Identified savings are split into fixed categories by SAVINGS_SPLIT. The
40/30/30 split is a policy constant, not a derived quantity.
"""

import logging

from vfm_audit.dimensions import round_half_up
from vfm_audit.models import Category, ProcurementRecord, Savings, SavingsCategory

logger = logging.getLogger(__name__)

BENCHMARK_CAPTURE_RATE = 0.8
LOCAL_SUPPLIER_RATE = 0.05
COMPETITION_RATE = 0.03
COMPETITION_MIN_BIDS = 3

NEGOTIATION_THRESHOLD = 1_000_000
NEGOTIATION_RATE = 0.05
CONSOLIDATION_RATE = 0.08
CONSOLIDATION_CATEGORIES = frozenset(
    {Category.IT_HARDWARE, Category.IT_SOFTWARE, Category.VEHICLES}
)
TIMELINE_RATE = 0.02
TIMELINE_THRESHOLD_DAYS = 90
DEFAULT_TIMELINE_DAYS = 60

# (type, share of identified savings, justification, implementation)
SAVINGS_SPLIT = (
    (
        "Price Negotiation",
        0.4,
        "Savings through price negotiation based on market analysis",
        "Renegotiate contract terms or seek competitive rebidding",
    ),
    (
        "Process Optimization",
        0.3,
        "Administrative cost savings through process improvements",
        "Implement e-procurement and automate approval workflows",
    ),
    (
        "Consolidation",
        0.3,
        "Volume discounts through contract consolidation",
        "Combine similar requirements across departments",
    ),
)


def identified_savings(record: ProcurementRecord) -> float:
    """Savings computable from the record as it stands.

    Args:
        record: Validated procurement record.

    Returns:
        Non-negative savings rounded to a whole currency unit.
    """
    savings = 0.0

    benchmark = record.market_price_benchmark
    if benchmark is not None and record.value < benchmark:
        savings += BENCHMARK_CAPTURE_RATE * (benchmark - record.value)

    if record.is_local_supplier:
        savings += LOCAL_SUPPLIER_RATE * record.value

    # One bid or none carries no competitive benefit, whatever the method
    if record.bids_received is not None and record.bids_received > COMPETITION_MIN_BIDS:
        savings += COMPETITION_RATE * record.value

    return round_half_up(savings)


def potential_savings(record: ProcurementRecord) -> float:
    """Forward-looking savings from negotiation, consolidation and timeline.

    Args:
        record: Validated procurement record.

    Returns:
        Non-negative savings rounded to a whole currency unit.
    """
    potential = 0.0

    if record.value > NEGOTIATION_THRESHOLD:
        potential += NEGOTIATION_RATE * record.value

    if record.category in CONSOLIDATION_CATEGORIES:
        potential += CONSOLIDATION_RATE * record.value

    timeline_days = record.award_lead_days
    if timeline_days is None:
        timeline_days = DEFAULT_TIMELINE_DAYS
    if timeline_days > TIMELINE_THRESHOLD_DAYS:
        potential += TIMELINE_RATE * record.value

    return round_half_up(potential)


def savings_categories(identified: float) -> tuple[SavingsCategory, ...]:
    """Split identified savings across the fixed savings categories."""
    return tuple(
        SavingsCategory(
            type=name,
            amount=round_half_up(identified * share, 2),
            justification=justification,
            implementation=implementation,
        )
        for name, share, justification, implementation in SAVINGS_SPLIT
    )


def estimate_savings(record: ProcurementRecord) -> Savings:
    identified = identified_savings(record)
    potential = potential_savings(record)
    logger.debug(
        "Savings for '%s': identified %.0f | potential %.0f %s",
        record.title,
        identified,
        potential,
        record.currency,
    )
    return Savings(
        identified=identified,
        potential=potential,
        categories=savings_categories(identified),
        realized=0.0,
    )
