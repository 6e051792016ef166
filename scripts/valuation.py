#!/usr/bin/env python3
"""
Validate valuation rules, preview formulas and print the loans dashboard.

Usage:
    python3 scripts/valuation.py validate --config valuations.yaml
    python3 scripts/valuation.py preview "amount * 1.1" --amount 5000 --days-held 90
    python3 scripts/valuation.py loans --config valuations.yaml --db-url sqlite:///ledger.db
    python3 scripts/valuation.py loans --config valuations.yaml --json

Examples:
    # Check every formula in a configuration file
    python3 scripts/valuation.py validate --config valuations.yaml

    # Try a formula with a note
    python3 scripts/valuation.py preview \\
        'amount + simple_interest(amount, parse_note_float(note, "Int:"), days_held)' \\
        --note "Int:12 Per:M"

    # Formula reference (variables, functions, snippets) as JSON
    python3 scripts/valuation.py reference
"""

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = "sqlite:///ledger.db"
DEFAULT_CONFIG = "valuations.yaml"

W = 80


# =============================================================================
# Formatting helpers
# =============================================================================


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(label: str, value, indent: int = 2) -> None:
    print(f"{' ' * indent}{label:<22} {value}")


# =============================================================================
# Commands
# =============================================================================


def cmd_validate(args: argparse.Namespace) -> int:
    from valuation_config.loader import load_config_file
    from valuation_config.validator import validate_valuation_config

    config = load_config_file(Path(args.config))
    result = validate_valuation_config(config)

    banner(f"VALUATION RULES  {config.source}")
    field("rules", config.rule_count)
    field("default_currency", config.default_currency)
    field("checksum", config.checksum[:16])
    for warning in result.warnings:
        print(f"  WARNING: {warning}")
    for error in result.errors:
        print(f"  ERROR: {error}")
    print()
    print("  OK" if result.is_valid else f"  {len(result.errors)} error(s)")
    return 0 if result.is_valid else 1


def cmd_preview(args: argparse.Namespace) -> int:
    from valuation_kernel.domain.clock import SystemClock
    from valuation_config import ValuationConfigStore
    from valuation_services.handlers import preview_valuation
    from valuation_services.valuation_service import ValuationService

    service = ValuationService(ValuationConfigStore(), SystemClock(), args.currency)
    body = {
        "formula": args.formula,
        "amount": args.amount,
        "days_held": args.days_held,
        "note": args.note,
    }
    preview = preview_valuation(service, body)["preview"]

    if args.json:
        print(json.dumps(preview, indent=2))
        return 0 if "error" not in preview else 1

    banner("FORMULA PREVIEW")
    field("formula", preview["formula"])
    for key, value in preview["sample_data"].items():
        field(key, value)
    if "error" in preview:
        print()
        print(f"  ERROR: {preview['error']}")
        return 1
    field("result", preview["result"])
    return 0


def cmd_reference(args: argparse.Namespace) -> int:
    from valuation_services.handlers import formula_reference_payload

    print(json.dumps(formula_reference_payload(), indent=2))
    return 0


def cmd_loans(args: argparse.Namespace) -> int:
    from valuation_kernel.db.engine import get_session, init_engine_from_url
    from valuation_kernel.domain.clock import SystemClock
    from valuation_kernel.selectors.posting_selector import PostingSelector
    from valuation_config import ValuationConfigStore, get_active_config
    from valuation_services.handlers import loans_dashboard
    from valuation_services.loan_service import LoanService
    from valuation_services.valuation_service import ValuationService

    store = ValuationConfigStore(get_active_config(args.config))
    try:
        init_engine_from_url(args.db_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: Cannot connect to database: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    try:
        clock = SystemClock()
        valuation = ValuationService(store, clock, store.default_currency)
        service = LoanService(PostingSelector(session), store, valuation, clock)
        payload = loans_dashboard(service)
    finally:
        session.close()

    if args.json:
        print(json.dumps(payload, indent=2))
        return 0

    summary = payload["summary"]
    banner("LOANS")
    for loan in payload["loans"]:
        print(
            f"  {loan['status']:<9} {loan['account']:<40} "
            f"{loan['principal']:>14} -> {loan['current_value']:>14}"
        )

    banner("SUMMARY")
    field("accounts", summary["total_accounts"])
    field("total_lent", summary["total_lent"])
    field("total_value", summary["total_value"])
    field("total_gain", summary["total_gain"])
    for status, s in summary["by_status"].items():
        field(f"status:{status}", f"{s['count']} / {s['amount']}")
    for risk, r in summary["by_risk"].items():
        field(f"risk:{risk}", f"{r['count']} / {r['amount']}")

    if payload["alerts"]:
        banner("ALERTS")
        for alert in payload["alerts"]:
            print(f"  [{alert['severity']}] {alert['account']}: {alert['message']}")
    return 0


# =============================================================================
# Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Custom valuation rules and the loans dashboard.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python3 scripts/valuation.py validate --config valuations.yaml\n"
            "  python3 scripts/valuation.py preview 'amount * 1.1'\n"
            "  python3 scripts/valuation.py loans --db-url sqlite:///ledger.db --json\n"
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Validate a valuation configuration file")
    validate.add_argument(
        "--config", type=str, default=DEFAULT_CONFIG,
        help=f"Configuration file (default: {DEFAULT_CONFIG})",
    )
    validate.set_defaults(func=cmd_validate)

    preview = sub.add_parser("preview", help="Evaluate a formula against sample data")
    preview.add_argument("formula", type=str, help="Formula source")
    preview.add_argument("--amount", type=float, default=0.0, help="Sample amount (default: 10000)")
    preview.add_argument("--days-held", type=float, default=0.0, help="Sample days held (default: 30)")
    preview.add_argument("--note", type=str, default="", help="Sample transaction note")
    preview.add_argument("--currency", type=str, default="INR", help="Commodity for the sample")
    preview.add_argument("--json", action="store_true", help="Output JSON")
    preview.set_defaults(func=cmd_preview)

    reference = sub.add_parser("reference", help="Print the formula reference as JSON")
    reference.set_defaults(func=cmd_reference)

    loans = sub.add_parser("loans", help="Print the loans dashboard")
    loans.add_argument(
        "--config", type=str, default=DEFAULT_CONFIG,
        help=f"Configuration file (default: {DEFAULT_CONFIG})",
    )
    loans.add_argument(
        "--db-url", type=str, default=DEFAULT_DB_URL,
        help=f"Database URL (default: {DEFAULT_DB_URL})",
    )
    loans.add_argument("--json", action="store_true", help="Output JSON")
    loans.set_defaults(func=cmd_loans)

    args = parser.parse_args(argv)

    # Suppress library logging
    logging.disable(logging.CRITICAL)

    try:
        return args.func(args)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        logging.disable(logging.NOTSET)


if __name__ == "__main__":
    sys.exit(main())
