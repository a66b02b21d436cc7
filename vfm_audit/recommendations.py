"""
recommendations.py — Recommendation Generator.

Emits three remediation actions in fixed priority order. Expected savings
are fixed fractions of potential savings (30% / 20% / 10%), so the output
depends only on the record's category, currency and potential savings.
"""

from vfm_audit.dimensions import round_half_up
from vfm_audit.models import Priority, ProcurementRecord, Recommendation

# (priority, category, share of potential savings, timeline)
RECOMMENDATION_POLICY = (
    (Priority.HIGH, "Cost Optimization", 0.3, "3 months"),
    (Priority.MEDIUM, "Process Improvement", 0.2, "6 months"),
    (Priority.LOW, "Supplier Development", 0.1, "12 months"),
)


def _templates(record: ProcurementRecord) -> dict[str, tuple[str, str]]:
    category = record.category.value.replace("_", " ").lower()
    return {
        "Cost Optimization": (
            f"Implement market price benchmarking for all {category} "
            f"procurements above {record.currency} 500,000",
            "Develop a price database and require market analysis in tender documents",
        ),
        "Process Improvement": (
            "Automate the procurement workflow through the national e-procurement system",
            "Integrate with existing systems and train staff",
        ),
        "Supplier Development": (
            "Develop a local supplier capacity building program",
            "Partner with industry and local business associations",
        ),
    }


def generate_recommendations(
    record: ProcurementRecord,
    potential: float,
) -> tuple[Recommendation, ...]:
    """Build the HIGH, MEDIUM, LOW recommendation set.

    Args:
        record: Validated procurement record.
        potential: Potential savings for the record.

    Returns:
        Tuple of exactly three recommendations, HIGH first.
    """
    templates = _templates(record)
    recs = []
    for priority, category, share, timeline in RECOMMENDATION_POLICY:
        text, implementation = templates[category]
        recs.append(
            Recommendation(
                priority=priority,
                category=category,
                recommendation=text,
                implementation=implementation,
                timeline=timeline,
                expected_savings=round_half_up(potential * share, 2),
            )
        )
    return tuple(recs)
