"""
auditor.py — VFM Audit Orchestrator.

Composes the dimension calculators, savings estimator, risk assessor and
recommendation generator into one VFMAuditResult. When a collaborator is
attached, each audit first asks it for an analysis:

    1. send SYSTEM_PROMPT + serialised record (bounded tokens, low temperature)
    2. parse the completion as a JSON object
    3. repair invalid fields with deterministic values, field by field
    4. return the composed result

Collaborator calls are bounded by a wall-clock timeout enforced here, on
top of any limit inside the collaborator itself. Any failure along the way
(timeout, network error, unparseable output) is logged and the
deterministic audit is returned instead. Callers never see collaborator
errors. A VFMAuditor holds only read-only configuration and
may be shared between threads.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Iterable, Optional

import pandas as pd

from vfm_audit.collaborator import (
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SECONDS,
    SYSTEM_PROMPT,
    AnthropicCollaborator,
    TextCollaborator,
    build_audit_prompt,
)
from vfm_audit.dimensions import (
    DEFAULT_DIMENSION_WEIGHTS,
    overall_score,
    score_dimensions,
    validate_weights,
)
from vfm_audit.models import ProcurementRecord, VFMAuditResult
from vfm_audit.recommendations import generate_recommendations
from vfm_audit.repair import parse_response, repair_result
from vfm_audit.risk import assess_risk
from vfm_audit.savings import estimate_savings

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.2


class CollaboratorTimeoutError(TimeoutError):
    """Raised when the collaborator does not answer within the audit timeout."""


class VFMAuditor:
    """Stateless value-for-money audit engine.

    Args:
        collaborator: Optional text-generation collaborator. Without one,
            every audit takes the deterministic path.
        weights: Custom dimension weights (economy, efficiency,
            effectiveness, equity) summing to 1.0. Defaults to 0.25 each.
        max_tokens: Completion token budget for the collaborator.
        temperature: Sampling temperature for the collaborator.
        timeout_seconds: Wall-clock limit on one collaborator call. Past it
            the call is abandoned and the deterministic audit is returned.
            None waits indefinitely.

    Raises:
        ValueError: If custom weights are malformed or do not sum to 1.0.
    """

    def __init__(
        self,
        collaborator: Optional[TextCollaborator] = None,
        weights: Optional[dict[str, float]] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.collaborator = collaborator
        self.weights = (
            validate_weights(weights) if weights is not None
            else dict(DEFAULT_DIMENSION_WEIGHTS)
        )
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    def deterministic_audit(self, record: ProcurementRecord) -> VFMAuditResult:
        """Audit a record with the heuristic calculators only."""
        record.validate()
        dimensions = score_dimensions(record)
        savings = estimate_savings(record)
        return VFMAuditResult(
            overall_score=overall_score(
                {name: d.score for name, d in dimensions.items()}, self.weights
            ),
            economy=dimensions["economy"],
            efficiency=dimensions["efficiency"],
            effectiveness=dimensions["effectiveness"],
            equity=dimensions["equity"],
            savings=savings,
            risk_assessment=assess_risk(record),
            recommendations=generate_recommendations(record, savings.potential),
            source="deterministic",
        )

    def _complete(self, prompt: str) -> str:
        """Run one collaborator call, giving up after timeout_seconds.

        The call runs on a throwaway worker thread. On timeout the worker is
        abandoned and its eventual result discarded.

        Raises:
            CollaboratorTimeoutError: If no completion arrives in time.
        """
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vfm-collaborator")
        try:
            future = pool.submit(
                self.collaborator.complete,
                SYSTEM_PROMPT,
                prompt,
                self.max_tokens,
                self.temperature,
            )
            try:
                return future.result(timeout=self.timeout_seconds)
            except FuturesTimeoutError:
                future.cancel()
                raise CollaboratorTimeoutError(
                    f"no completion within {self.timeout_seconds:.1f}s"
                ) from None
        finally:
            pool.shutdown(wait=False)

    def audit(self, record: ProcurementRecord) -> VFMAuditResult:
        """Audit a record, delegating to the collaborator when one is attached.

        Args:
            record: Validated procurement record.

        Returns:
            A VFMAuditResult; deterministic whenever the collaborator fails.

        Raises:
            RecordValidationError: If the record violates an input invariant.
        """
        fallback = self.deterministic_audit(record)
        if self.collaborator is None:
            return fallback

        try:
            text = self._complete(build_audit_prompt(record))
            payload = parse_response(text)
            result, repaired = repair_result(payload, fallback, record, self.weights)
        except Exception as exc:
            logger.warning(
                "Collaborator audit failed for '%s' (%s: %s) — using deterministic result",
                record.title,
                type(exc).__name__,
                exc,
            )
            return fallback

        if repaired:
            logger.info(
                "Collaborator audit for '%s' accepted with %d repaired field(s): %s",
                record.title,
                len(repaired),
                ", ".join(repaired),
            )
        else:
            logger.info("Collaborator audit for '%s' accepted", record.title)
        return result

    def audit_all(self, records: Iterable[ProcurementRecord]) -> list[VFMAuditResult]:
        """Audit records in order; each audit is independent of the others."""
        results = [self.audit(record) for record in records]
        by_source: dict[str, int] = {}
        for result in results:
            by_source[result.source] = by_source.get(result.source, 0) + 1
        logger.info(
            "Audited %d records — deterministic: %d | collaborator: %d | repaired: %d",
            len(results),
            by_source.get("deterministic", 0),
            by_source.get("collaborator", 0),
            by_source.get("repaired", 0),
        )
        return results


def build_auditor(config: dict[str, Any], offline: bool = False) -> VFMAuditor:
    """Construct a VFMAuditor from a loaded configuration mapping.

    The Anthropic collaborator is attached only when
    collaborator.enabled is true, ANTHROPIC_API_KEY is set and `offline`
    is False.

    Args:
        config: Parsed config.yaml contents.
        offline: Force deterministic audits.

    Returns:
        Configured VFMAuditor.
    """
    audit_cfg = config.get("audit") or {}
    collab_cfg = config.get("collaborator") or {}

    collaborator = None
    if offline:
        logger.info("Offline mode — collaborator disabled")
    elif not collab_cfg.get("enabled", False):
        logger.info("Collaborator disabled in configuration")
    elif not os.environ.get("ANTHROPIC_API_KEY"):
        logger.info("ANTHROPIC_API_KEY not set — collaborator disabled")
    else:
        collaborator = AnthropicCollaborator(
            model=collab_cfg.get("model", DEFAULT_MODEL),
            timeout_seconds=float(collab_cfg.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
        )
        logger.info(
            "Collaborator enabled: %s (timeout %.0fs)",
            collaborator.model,
            collaborator.timeout_seconds,
        )

    return VFMAuditor(
        collaborator=collaborator,
        weights=audit_cfg.get("dimension_weights"),
        max_tokens=int(collab_cfg.get("max_tokens", DEFAULT_MAX_TOKENS)),
        temperature=float(collab_cfg.get("temperature", DEFAULT_TEMPERATURE)),
        timeout_seconds=float(collab_cfg.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
    )


def summarise_audits(
    records: list[ProcurementRecord],
    results: list[VFMAuditResult],
) -> pd.DataFrame:
    """Tabulate a portfolio of audits, weakest value-for-money first.

    Args:
        records: Audited records, in the same order as `results`.
        results: Audit results.

    Returns:
        DataFrame with one row per audit and columns:
            title, category, supplier, value, currency, overall_score,
            economy, efficiency, effectiveness, equity,
            identified_savings, potential_savings, risk_level, source

    Raises:
        ValueError: If the two lists differ in length.
    """
    if len(records) != len(results):
        raise ValueError(
            f"Got {len(records)} records but {len(results)} audit results"
        )

    rows = []
    for record, result in zip(records, results):
        rows.append({
            "title": record.title,
            "category": record.category.value,
            "supplier": record.supplier or "Not awarded",
            "value": record.value,
            "currency": record.currency,
            "overall_score": result.overall_score,
            **result.dimension_scores(),
            "identified_savings": result.savings.identified,
            "potential_savings": result.savings.potential,
            "risk_level": result.risk_assessment.overall.value,
            "source": result.source,
        })

    columns = [
        "title", "category", "supplier", "value", "currency", "overall_score",
        "economy", "efficiency", "effectiveness", "equity",
        "identified_savings", "potential_savings", "risk_level", "source",
    ]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("overall_score", kind="stable").reset_index(drop=True)
