"""
risk.py — Risk Assessor.

Three qualitative risk factors per audit: supplier performance (the record's
declared risk level), cost overrun (value-driven) and compliance (fixed
baseline, annotated when the award timeline looks accelerated). The overall
level echoes the declared risk level; it is not recomputed from the factors.
"""

from vfm_audit.dimensions import is_timeline_anomaly
from vfm_audit.models import ProcurementRecord, RiskAssessment, RiskFactor, RiskLevel

COST_OVERRUN_THRESHOLD = 10_000_000


def risk_factors(record: ProcurementRecord) -> tuple[RiskFactor, ...]:
    compliance_impact = "Legal and regulatory violations"
    compliance_mitigation = "Regular compliance audits and staff training"
    if is_timeline_anomaly(record):
        compliance_impact += (
            f"; award made {record.award_lead_days} days after publication "
            "may not have observed the minimum bidding period"
        )
        compliance_mitigation += "; review the tender file for the accelerated award"

    return (
        RiskFactor(
            risk="Supplier Performance",
            level=record.risk_level,
            impact="Contract delivery and quality issues",
            mitigation="Implement performance monitoring and penalty clauses",
        ),
        RiskFactor(
            risk="Cost Overrun",
            level=(
                RiskLevel.HIGH
                if record.value > COST_OVERRUN_THRESHOLD
                else RiskLevel.MEDIUM
            ),
            impact="Budget exceedance and project delays",
            mitigation="Include contingency planning and regular cost reviews",
        ),
        RiskFactor(
            risk="Compliance",
            level=RiskLevel.MEDIUM,
            impact=compliance_impact,
            mitigation=compliance_mitigation,
        ),
    )


def assess_risk(record: ProcurementRecord) -> RiskAssessment:
    return RiskAssessment(overall=record.risk_level, factors=risk_factors(record))
