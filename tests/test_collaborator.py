"""
test_collaborator.py — Tests for the Anthropic collaborator adapter and
prompt construction. No network access: the SDK client is replaced by a
stub exposing messages.create().
"""

from datetime import date
from types import SimpleNamespace

import pytest

from vfm_audit.collaborator import (
    SYSTEM_PROMPT,
    AnthropicCollaborator,
    TextCollaborator,
    build_audit_prompt,
)


class _StubMessages:
    def __init__(self, blocks=None, exc=None):
        self.blocks = blocks or []
        self.exc = exc
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.exc is not None:
            raise self.exc
        return SimpleNamespace(content=self.blocks)


def _stub_client(**kwargs):
    return SimpleNamespace(messages=_StubMessages(**kwargs))


class TestAnthropicCollaborator:

    def test_sends_system_prompt_and_knobs(self):
        client = _stub_client(blocks=[SimpleNamespace(type="text", text="{}")])
        collaborator = AnthropicCollaborator(model="claude-test", client=client)

        text = collaborator.complete(SYSTEM_PROMPT, "audit this", 4000, 0.2)

        assert text == "{}"
        kwargs = client.messages.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 4000
        assert kwargs["temperature"] == 0.2
        assert kwargs["system"] == SYSTEM_PROMPT
        assert kwargs["messages"] == [{"role": "user", "content": "audit this"}]

    def test_joins_text_blocks_and_skips_others(self):
        client = _stub_client(blocks=[
            SimpleNamespace(type="text", text='{"overall'),
            SimpleNamespace(type="tool_use", text="ignored"),
            SimpleNamespace(type="text", text='Score": 70}'),
        ])
        text = AnthropicCollaborator(client=client).complete("s", "p", 10, 0.0)
        assert text == '{"overallScore": 70}'

    def test_errors_propagate_to_caller(self):
        client = _stub_client(exc=TimeoutError("read timed out"))
        with pytest.raises(TimeoutError):
            AnthropicCollaborator(client=client).complete("s", "p", 10, 0.0)

    def test_base_interface_is_abstract(self):
        with pytest.raises(NotImplementedError):
            TextCollaborator().complete("s", "p", 10, 0.0)


class TestBuildAuditPrompt:

    def test_serialises_record_fields(self, make_record):
        record = make_record(
            market_price_benchmark=600_000.0,
            award_date=date(2024, 3, 1),
            bids_received=4,
        )
        prompt = build_audit_prompt(record)
        assert "Title: District Road Rehabilitation" in prompt
        assert "Category: WORKS" in prompt
        assert "Contract Value: 500000.0 GHS" in prompt
        assert "Award Date: 2024-03-01" in prompt
        assert "Market Price Benchmark: 600000.0" in prompt
        assert "Bids Received: 4" in prompt
        assert "Risk Level: MEDIUM" in prompt

    def test_missing_fields_rendered_as_placeholders(self, make_record):
        prompt = build_audit_prompt(make_record(supplier=None))
        assert "Supplier: Not awarded" in prompt
        assert "Award Date: Not awarded" in prompt
        assert "Estimated Cost: N/A" in prompt

    def test_requests_json_shape(self, make_record):
        prompt = build_audit_prompt(make_record())
        assert "riskAssessment" in prompt
        assert "expectedSavings" in prompt
