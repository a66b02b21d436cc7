"""
conftest.py — Shared fixtures for the VFM audit test suite.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

# Ensure the package is importable from project root
sys.path.insert(0, str(Path(__file__).parent.parent))

from vfm_audit.models import ProcurementRecord


def _make_record(**overrides) -> ProcurementRecord:
    """Return a valid record with neutral defaults (no bonuses apply)."""
    base = {
        "title": "District Road Rehabilitation",
        "description": "Rehabilitation of 12km of feeder roads",
        "category": "WORKS",
        "value": 500_000.0,
        "currency": "GHS",
        "procurement_method": "COMPETITIVE_TENDERING",
        "published_date": date(2024, 1, 10),
        "closing_date": date(2024, 2, 10),
        "risk_level": "MEDIUM",
        "is_local_supplier": False,
        "supplier": "Roadworks Ltd",
        "supplier_country": "Togo",
    }
    base.update(overrides)
    return ProcurementRecord(**base)


@pytest.fixture
def make_record():
    """Factory fixture: make_record(**overrides) -> ProcurementRecord."""
    return _make_record
