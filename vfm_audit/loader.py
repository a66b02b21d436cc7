"""
loader.py — Configuration and procurement record loading.

Reads config.yaml and adapts a flat procurement CSV into validated
ProcurementRecord objects. Every row passes through the record's own
validation; a bad row raises with its row number rather than being skipped.
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Mapping, Optional

import pandas as pd
import yaml

from vfm_audit.models import ProcurementRecord, RecordValidationError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {
    "title", "category", "value", "currency", "procurement_method",
    "published_date", "closing_date", "risk_level",
}
DATE_COLUMNS = (
    "published_date", "closing_date", "award_date",
    "contract_start_date", "contract_end_date",
)
NUMERIC_COLUMNS = (
    "value", "bids_received", "market_price_benchmark",
    "estimated_cost", "budget_allocation",
)
TRUE_VALUES = {"true", "yes", "y", "1"}


def load_config(config_path: str = "config.yaml") -> dict[str, Any]:
    """Load YAML configuration file.

    Args:
        config_path: Path to config.yaml relative to project root.

    Returns:
        Parsed configuration dictionary.

    Raises:
        FileNotFoundError: If config file does not exist.
        yaml.YAMLError: If config file is malformed.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    with open(config_path, "r") as fh:
        config = yaml.safe_load(fh) or {}
    logger.debug("Configuration loaded from %s", config_path)
    return config


def _missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _as_date(value: Any) -> Optional[date]:
    if _missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


def _as_bool(value: Any) -> bool:
    if _missing(value):
        return False
    if isinstance(value, str):
        return value.strip().lower() in TRUE_VALUES
    return bool(value)


def _as_text(value: Any) -> Optional[str]:
    if _missing(value):
        return None
    text = str(value).strip()
    return text or None


def record_from_mapping(row: Mapping[str, Any]) -> ProcurementRecord:
    """Build a ProcurementRecord from a flat mapping (CSV row, JSON object).

    Missing optional keys and NaN values become None.

    Raises:
        RecordValidationError: If the resulting record is invalid.
    """
    bids = row.get("bids_received")
    return ProcurementRecord(
        title=_as_text(row.get("title")) or "",
        description=_as_text(row.get("description")) or "",
        category=row.get("category"),
        value=None if _missing(row.get("value")) else float(row["value"]),
        currency=_as_text(row.get("currency")) or "",
        procurement_method=row.get("procurement_method"),
        published_date=_as_date(row.get("published_date")),
        closing_date=_as_date(row.get("closing_date")),
        risk_level=row.get("risk_level"),
        is_local_supplier=_as_bool(row.get("is_local_supplier")),
        supplier=_as_text(row.get("supplier")),
        supplier_country=_as_text(row.get("supplier_country")),
        bids_received=None if _missing(bids) else int(bids),
        award_date=_as_date(row.get("award_date")),
        contract_start_date=_as_date(row.get("contract_start_date")),
        contract_end_date=_as_date(row.get("contract_end_date")),
        market_price_benchmark=_optional_float(row.get("market_price_benchmark")),
        estimated_cost=_optional_float(row.get("estimated_cost")),
        budget_allocation=_optional_float(row.get("budget_allocation")),
    )


def _optional_float(value: Any) -> Optional[float]:
    return None if _missing(value) else float(value)


def load_records(csv_path: str) -> list[ProcurementRecord]:
    """Load and validate procurement records from a CSV file.

    Args:
        csv_path: Absolute or relative path to the records CSV.

    Returns:
        List of validated records in file order.

    Raises:
        FileNotFoundError: If the CSV does not exist.
        ValueError: If required columns are missing.
        RecordValidationError: If a row fails validation (message carries
            the 1-based data row number).
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Procurement records not found at {path}")

    df = pd.read_csv(path)

    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {sorted(missing)}")

    # Type coercion
    for col in DATE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce")
    for col in NUMERIC_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")

    records = []
    for row_number, row in enumerate(df.to_dict(orient="records"), start=1):
        try:
            records.append(record_from_mapping(row))
        except RecordValidationError as exc:
            raise RecordValidationError(
                exc.field, f"row {row_number}: {exc.message}"
            ) from exc

    logger.info("Loaded %d procurement records from %s", len(records), path)
    return records
