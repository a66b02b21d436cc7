"""
collaborator.py — External text-generation collaborator.

The auditor talks to a TextCollaborator: anything that turns a system
prompt and a user prompt into a completion string. AnthropicCollaborator is
the production implementation; tests supply their own doubles.

A collaborator must bound its own wall-clock time. AnthropicCollaborator
builds its client with an explicit timeout and retries disabled, so one
audit makes at most one request.
"""

import logging
from typing import Any, Optional

import anthropic

from vfm_audit.models import ProcurementRecord

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_TIMEOUT_SECONDS = 20.0

SYSTEM_PROMPT = """You are an expert Value for Money (VFM) auditor specialising in public procurement.
You follow World Bank and national procurement authority guidelines for VFM assessment.

Your analysis must include:
1. Economy (cost-effectiveness) - 25% weight
2. Efficiency (resource utilisation) - 25% weight
3. Effectiveness (outcome achievement) - 25% weight
4. Equity (fairness and inclusion) - 25% weight

Provide specific scores (0-100), detailed analysis and actionable recommendations.
Include realistic savings calculations with clear justifications.
Respond with a single JSON object and nothing else."""

RESPONSE_SHAPE = """{
  "overallScore": number,
  "economy": {"score": number, "factors": [
      {"factor": string, "score": number, "weight": number,
       "analysis": string, "recommendations": [string]}]},
  "efficiency": {...same shape as economy...},
  "effectiveness": {...same shape as economy...},
  "equity": {...same shape as economy...},
  "savings": {"identified": number, "realized": 0, "potential": number,
              "categories": [{"type": string, "amount": number,
                              "justification": string, "implementation": string}]},
  "riskAssessment": {"overall": "LOW"|"MEDIUM"|"HIGH"|"CRITICAL",
                     "factors": [{"risk": string, "level": "LOW"|"MEDIUM"|"HIGH"|"CRITICAL",
                                  "impact": string, "mitigation": string}]},
  "recommendations": [{"priority": "HIGH"|"MEDIUM"|"LOW", "category": string,
                       "recommendation": string, "expectedSavings": number,
                       "implementation": string, "timeline": string}]
}"""


class TextCollaborator:
    """Interface for an external text-completion service."""

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        raise NotImplementedError


class AnthropicCollaborator(TextCollaborator):
    """TextCollaborator backed by the Anthropic Messages API.

    Args:
        model: Model identifier.
        timeout_seconds: httpx timeout passed to the SDK client. It bounds
            each connect, read, write and pool phase separately, not the
            whole request; VFMAuditor applies the wall-clock limit.
        client: Pre-built client; when omitted one is created from the
            ANTHROPIC_API_KEY environment variable.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = client or anthropic.Anthropic(
            timeout=timeout_seconds, max_retries=0
        )

    def complete(
        self,
        system: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        msg = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(
            block.text for block in msg.content if getattr(block, "type", "text") == "text"
        )
        logger.debug(
            "Collaborator %s returned %d characters", self.model, len(text)
        )
        return text


def _fmt(value: Any, missing: str = "N/A") -> str:
    if value is None:
        return missing
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def build_audit_prompt(record: ProcurementRecord) -> str:
    """Serialise a record into the user prompt for the collaborator."""
    return f"""Perform a comprehensive Value for Money (VFM) audit for the following public procurement project.

PROJECT DETAILS:
- Title: {record.title}
- Description: {record.description}
- Category: {_fmt(record.category)}
- Contract Value: {record.value} {record.currency}
- Procurement Method: {_fmt(record.procurement_method)}
- Supplier: {_fmt(record.supplier, 'Not awarded')}
- Supplier Country: {_fmt(record.supplier_country)}
- Local Supplier: {record.is_local_supplier}
- Bids Received: {record.bids_received or 0}
- Published Date: {_fmt(record.published_date)}
- Closing Date: {_fmt(record.closing_date)}
- Award Date: {_fmt(record.award_date, 'Not awarded')}
- Contract Period: {_fmt(record.contract_start_date)} to {_fmt(record.contract_end_date)}
- Risk Level: {_fmt(record.risk_level)}
- Market Price Benchmark: {_fmt(record.market_price_benchmark)}
- Estimated Cost: {_fmt(record.estimated_cost)}
- Budget Allocation: {_fmt(record.budget_allocation)}

AUDIT REQUIREMENTS:
1. Analyse each VFM component (Economy, Efficiency, Effectiveness, Equity)
2. Give each component three weighted factors; weights within a component sum to 1.0
3. Provide scores between 0 and 100
4. Identify savings opportunities with realistic calculations; realized savings are 0
5. Assess procurement compliance and risks
6. Provide actionable recommendations ordered HIGH, MEDIUM, LOW

Return only a JSON object with exactly this shape:
{RESPONSE_SHAPE}
"""
