"""
models.py — Procurement record and audit result value objects.

ProcurementRecord is validated on construction: an invalid record raises
RecordValidationError naming the offending field and never reaches the
scoring layer. Audit results are frozen dataclasses holding tuples so two
audits of the same record compare equal field-for-field.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional


class Category(str, Enum):
    WORKS = "WORKS"
    GOODS = "GOODS"
    SERVICES = "SERVICES"
    CONSULTANCY = "CONSULTANCY"
    IT_HARDWARE = "IT_HARDWARE"
    IT_SOFTWARE = "IT_SOFTWARE"
    VEHICLES = "VEHICLES"
    EQUIPMENT = "EQUIPMENT"


class ProcurementMethod(str, Enum):
    COMPETITIVE_TENDERING = "COMPETITIVE_TENDERING"
    SINGLE_SOURCE = "SINGLE_SOURCE"
    RESTRICTED_TENDERING = "RESTRICTED_TENDERING"
    FRAMEWORK_AGREEMENT = "FRAMEWORK_AGREEMENT"
    EMERGENCY_PROCUREMENT = "EMERGENCY_PROCUREMENT"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class Priority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# Sort key for recommendation ordering (HIGH first)
PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class RecordValidationError(ValueError):
    """Raised when a procurement record fails input validation.

    Attributes:
        field: Name of the offending record field.
    """

    def __init__(self, field_name: str, message: str) -> None:
        self.field = field_name
        self.message = message
        super().__init__(f"{field_name}: {message}")


def _coerce_enum(enum_cls: type, value: Any, field_name: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise RecordValidationError(
            field_name, f"unknown value {value!r} (expected one of: {allowed})"
        ) from None


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProcurementRecord:
    """A public contract award as supplied by the data layer."""

    title: str
    description: str
    category: Category
    value: float
    currency: str
    procurement_method: ProcurementMethod
    published_date: date
    closing_date: date
    risk_level: RiskLevel
    is_local_supplier: bool = False
    supplier: Optional[str] = None
    supplier_country: Optional[str] = None
    bids_received: Optional[int] = None
    award_date: Optional[date] = None
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    market_price_benchmark: Optional[float] = None
    estimated_cost: Optional[float] = None
    budget_allocation: Optional[float] = None

    def __post_init__(self) -> None:
        # Enum fields accept their string names; frozen, so set via object
        object.__setattr__(
            self, "category", _coerce_enum(Category, self.category, "category")
        )
        object.__setattr__(
            self,
            "procurement_method",
            _coerce_enum(ProcurementMethod, self.procurement_method, "procurement_method"),
        )
        object.__setattr__(
            self, "risk_level", _coerce_enum(RiskLevel, self.risk_level, "risk_level")
        )
        self.validate()

    def validate(self) -> None:
        """Check record invariants.

        Raises:
            RecordValidationError: On the first field that violates an invariant.
        """
        if not self.title or not str(self.title).strip():
            raise RecordValidationError("title", "must not be empty")
        if not self.currency or not str(self.currency).strip():
            raise RecordValidationError("currency", "must not be empty")
        if self.value is None or not math.isfinite(self.value) or self.value <= 0:
            raise RecordValidationError(
                "value", f"must be a positive finite number, got {self.value!r}"
            )

        for name in ("published_date", "closing_date"):
            if getattr(self, name) is None:
                raise RecordValidationError(name, "is required")

        for name in ("market_price_benchmark", "estimated_cost", "budget_allocation"):
            amount = getattr(self, name)
            if amount is not None and (not math.isfinite(amount) or amount < 0):
                raise RecordValidationError(
                    name, f"must be a non-negative finite number, got {amount!r}"
                )

        if self.bids_received is not None and self.bids_received < 0:
            raise RecordValidationError(
                "bids_received", f"must be non-negative, got {self.bids_received!r}"
            )

        if self.award_date is not None and self.award_date < self.published_date:
            raise RecordValidationError(
                "award_date",
                f"{self.award_date.isoformat()} is before published_date "
                f"{self.published_date.isoformat()}",
            )
        if (
            self.contract_start_date is not None
            and self.contract_end_date is not None
            and self.contract_end_date < self.contract_start_date
        ):
            raise RecordValidationError(
                "contract_end_date",
                f"{self.contract_end_date.isoformat()} is before contract_start_date "
                f"{self.contract_start_date.isoformat()}",
            )

    @property
    def award_lead_days(self) -> Optional[int]:
        """Days from publication to award, or None when not yet awarded."""
        if self.award_date is None:
            return None
        return (self.award_date - self.published_date).days


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Factor:
    factor: str
    score: float
    weight: float
    analysis: str
    recommendations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "factor": self.factor,
            "score": self.score,
            "weight": self.weight,
            "analysis": self.analysis,
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class Dimension:
    score: float
    factors: tuple[Factor, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "factors": [f.to_dict() for f in self.factors]}


@dataclass(frozen=True)
class SavingsCategory:
    type: str
    amount: float
    justification: str
    implementation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "amount": self.amount,
            "justification": self.justification,
            "implementation": self.implementation,
        }


@dataclass(frozen=True)
class Savings:
    identified: float
    potential: float
    categories: tuple[SavingsCategory, ...]
    # Realization is tracked outside the engine
    realized: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "identified": self.identified,
            "realized": self.realized,
            "potential": self.potential,
            "categories": [c.to_dict() for c in self.categories],
        }


@dataclass(frozen=True)
class RiskFactor:
    risk: str
    level: RiskLevel
    impact: str
    mitigation: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk": self.risk,
            "level": self.level.value,
            "impact": self.impact,
            "mitigation": self.mitigation,
        }


@dataclass(frozen=True)
class RiskAssessment:
    overall: RiskLevel
    factors: tuple[RiskFactor, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall.value,
            "factors": [f.to_dict() for f in self.factors],
        }


@dataclass(frozen=True)
class Recommendation:
    priority: Priority
    category: str
    recommendation: str
    implementation: str
    timeline: str
    expected_savings: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        out = {
            "priority": self.priority.value,
            "category": self.category,
            "recommendation": self.recommendation,
            "implementation": self.implementation,
            "timeline": self.timeline,
        }
        if self.expected_savings is not None:
            out["expectedSavings"] = self.expected_savings
        return out


@dataclass(frozen=True)
class VFMAuditResult:
    """Complete value-for-money audit of one procurement record."""

    overall_score: float
    economy: Dimension
    efficiency: Dimension
    effectiveness: Dimension
    equity: Dimension
    savings: Savings
    risk_assessment: RiskAssessment
    recommendations: tuple[Recommendation, ...]
    source: str = field(default="deterministic", compare=False)

    def dimension_scores(self) -> dict[str, float]:
        return {
            "economy": self.economy.score,
            "efficiency": self.efficiency.score,
            "effectiveness": self.effectiveness.score,
            "equity": self.equity.score,
        }

    def to_dict(self) -> dict[str, Any]:
        """Render the camelCase, JSON-compatible shape of the audit."""
        return {
            "overallScore": self.overall_score,
            "economy": self.economy.to_dict(),
            "efficiency": self.efficiency.to_dict(),
            "effectiveness": self.effectiveness.to_dict(),
            "equity": self.equity.to_dict(),
            "savings": self.savings.to_dict(),
            "riskAssessment": self.risk_assessment.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
        }
