"""
main.py — Procurement VFM Audit — CLI Entry Point.

Audits every procurement record in a CSV file and optionally writes an
Excel audit workbook:
  1. load     — read and validate procurement records
  2. audit    — run the VFM audit engine on each record
  3. report   — write the Excel workbook (--report)

Usage examples:
    python main.py
    python main.py --input data/procurement_records.csv --report
    python main.py --offline --report --log-level DEBUG
    python main.py --config custom_config.yaml

Environment:
    ANTHROPIC_API_KEY   Enables the text-generation collaborator (optional)
    LOG_LEVEL           Override log verbosity (default: INFO)
"""

import argparse
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path

import yaml


def _configure_logging(log_dir: str = "logs", level: str = "INFO") -> None:
    """Set up rotating file handler and stream handler for the CLI.

    Creates a dated log file in `log_dir` and mirrors output to stdout.
    Log level is read from the LOG_LEVEL environment variable or the `level`
    parameter.

    Args:
        log_dir: Directory to write log files into.
        level: Default log level string (DEBUG, INFO, WARNING, ERROR).
    """
    effective_level = os.environ.get("LOG_LEVEL", level).upper()
    numeric_level = getattr(logging, effective_level, logging.INFO)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    log_filename = Path(log_dir) / f"vfm_audit_{datetime.today().strftime('%Y%m%d')}.log"

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Rotating file handler: 10 MB max, keep 7 files
    file_handler = logging.handlers.RotatingFileHandler(
        log_filename, maxBytes=10 * 1024 * 1024, backupCount=7, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(stream_handler)

    for noisy in ("httpx", "httpcore", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="vfm-audit",
        description=(
            "Procurement Value-for-Money Audit Engine — "
            "scores contract awards on Economy, Efficiency, Effectiveness "
            "and Equity and estimates savings."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --report
  python main.py --input records.csv --offline
  python main.py --config custom_config.yaml --log-level DEBUG
        """,
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        metavar="PATH",
        help="Path to configuration YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--input",
        metavar="CSV",
        help="Procurement records CSV (default: paths.input_records from config)",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Never call the text-generation collaborator",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Write the Excel audit workbook",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity level (default: INFO)",
    )
    return parser.parse_args(argv)


def run(args: argparse.Namespace, cfg: dict, logger: logging.Logger) -> int:
    """Load, audit and optionally report; return an exit code.

    Args:
        args: Parsed CLI arguments.
        cfg: Parsed configuration.
        logger: Configured logger.

    Returns:
        0 on success, 1 on a load or report failure.
    """
    from vfm_audit.auditor import build_auditor, summarise_audits
    from vfm_audit.loader import load_records
    from vfm_audit.reporter import generate_report

    input_path = args.input or cfg.get("paths", {}).get("input_records")
    if not input_path:
        logger.error("No input CSV given and paths.input_records is not configured")
        return 1

    try:
        records = load_records(input_path)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Could not load procurement records: %s", exc)
        return 1

    try:
        auditor = build_auditor(cfg, offline=args.offline)
    except ValueError as exc:
        logger.error("Invalid audit configuration: %s", exc)
        return 1

    results = auditor.audit_all(records)
    summary = summarise_audits(records, results)

    for row in summary.itertuples(index=False):
        logger.info(
            "  %-40s overall %6.2f | identified %s %14s | potential %s %14s | risk %s",
            row.title[:40],
            row.overall_score,
            row.currency,
            f"{row.identified_savings:,.0f}",
            row.currency,
            f"{row.potential_savings:,.0f}",
            row.risk_level,
        )

    if args.report:
        try:
            report_path = generate_report(
                summary, [r.title for r in records], results, cfg
            )
            logger.info("Report generated: %s", report_path)
        except Exception as exc:
            logger.error("Report generation failed: %s", exc, exc_info=True)
            return 1

    logger.info("=" * 60)
    logger.info("AUDIT COMPLETE — %d procurements audited", len(results))
    logger.info("=" * 60)
    return 0


def main(argv=None) -> None:
    """Parse arguments, configure logging, and run the audit."""
    args = _parse_args(argv)

    try:
        with open(args.config, "r") as fh:
            cfg = yaml.safe_load(fh) or {}
    except FileNotFoundError:
        print(f"Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    _configure_logging(
        log_dir=cfg.get("paths", {}).get("log_dir", "logs"), level=args.log_level
    )
    logger = logging.getLogger(__name__)
    logger.info(
        "Procurement VFM Audit | %s", datetime.today().strftime("%Y-%m-%d %H:%M:%S")
    )
    logger.info("Config: %s | Log level: %s", args.config, args.log_level)

    sys.exit(run(args, cfg, logger))


if __name__ == "__main__":
    main()
