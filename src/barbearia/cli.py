"""Barbearia CLI: command-line interface for the rotation and commission engine.

Usage:
    barbearia status
    barbearia add-barber --id b1 --name Ana
    barbearia add-service --id corte --name Corte --minutes 30
    barbearia record-service --barber b1 --date 2025-05-02 --month 2025-05
    barbearia pass-turn --barber b1
    barbearia rank --month 2025-05
    barbearia log-service --barber b1 --service corte --quantity 2
    barbearia commission --month 2025-05 --revenue 15000.00
    barbearia commission-history --month 2025-05 --months 3 --revenue 2025-05=15000.00
    barbearia day --date 2025-05-02
    barbearia check-invariants

BARBEARIA_CONFIG_DIR and BARBEARIA_DATA_DIR (environment or .env) override
the default config/ and data/ directories.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from barbearia.persistence.event_log import EventLog
from barbearia.persistence.state_store import StateStore
from barbearia.policy.resolver import PolicyResolver
from barbearia.service import BarbeariaService, ServiceResult

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"


def _make_service(config_dir: Path, data_dir: Path) -> BarbeariaService:
    """Create a BarbeariaService with durable persistence."""
    data_dir.mkdir(parents=True, exist_ok=True)
    resolver = PolicyResolver.from_config_dir(config_dir)
    event_log = EventLog(storage_path=data_dir / "events.jsonl")
    state_store = StateStore(storage_path=data_dir / "state.json")
    return BarbeariaService(resolver, event_log=event_log, state_store=state_store)


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _report(result: ServiceResult, message: Optional[str] = None) -> int:
    if result.success:
        print(message or json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_add_barber(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.register_barber(args.id, args.name, active=not args.inactive)
    return _report(result, f"Registered barber: {result.data.get('barber_id')}")


def cmd_deactivate_barber(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.set_barber_active(args.id, active=args.activate)
    state = "active" if args.activate else "inactive"
    return _report(result, f"Barber {args.id} is now {state}")


def cmd_add_service(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.register_service(
        args.id,
        args.name,
        minutes_per_unit=args.minutes,
        is_subscription=not args.not_subscription,
    )
    return _report(result, f"Registered service: {result.data.get('service_id')}")


def cmd_record_service(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.record_service(args.barber, _parse_date(args.date), args.month)
    return _report(result)


def cmd_pass_turn(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.pass_turn(args.barber, _parse_date(args.date), args.month)
    return _report(result)


def cmd_correct_services(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.correct_services(
        args.barber, args.delta, _parse_date(args.date), args.month,
    )
    return _report(result)


def cmd_log_service(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.log_service(
        args.barber, args.service, _parse_date(args.date), quantity=args.quantity,
    )
    return _report(result)


def cmd_rank(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    return _report(service.queue(args.month))


def cmd_position(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    return _report(service.barber_position(args.barber, args.month))


def cmd_commission(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    if args.barber:
        result = service.commission_for(args.barber, args.month, args.revenue, args.pct)
    else:
        result = service.commission_report(args.month, args.revenue, args.pct)
    return _report(result)


def cmd_export_commission(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.commission_csv(args.month, args.revenue, args.pct)
    if not result.success:
        return _report(result)
    if args.output:
        Path(args.output).write_text(result.data["csv"], encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        sys.stdout.write(result.data["csv"])
    return 0


def _parse_revenues(entries: Optional[list[str]]) -> dict[str, str]:
    """Parse repeated ``YYYY-MM=amount`` options into a mapping."""
    revenues: dict[str, str] = {}
    for entry in entries or []:
        key, sep, amount = entry.partition("=")
        if not sep or not amount.strip():
            raise ValueError(f"Expected YYYY-MM=amount, got {entry!r}")
        revenues[key.strip()] = amount.strip()
    return revenues


def cmd_commission_history(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    result = service.commission_history(
        args.month, args.months, _parse_revenues(args.revenue), args.pct,
    )
    return _report(result)


def cmd_day(args: argparse.Namespace) -> int:
    service = _make_service(args.config, args.data)
    return _report(service.daily_activity(_parse_date(args.date)))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Validate the engine policy configuration."""
    try:
        resolver = PolicyResolver.from_config_dir(args.config)
    except (ValueError, OSError) as e:
        print(f"FAILED: {e}", file=sys.stderr)
        return 1
    print(f"Policy OK: {json.dumps(resolver.as_dict(), sort_keys=True)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="barbearia",
        description="Barbershop rotation queue and commission engine CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.getenv("BARBEARIA_CONFIG_DIR") or DEFAULT_CONFIG),
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=Path(os.getenv("BARBEARIA_DATA_DIR") or DEFAULT_DATA),
        help="Path to data directory (default: data/)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("BARBEARIA_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show system status")

    # add-barber
    p_barber = sub.add_parser("add-barber", help="Register a barber")
    p_barber.add_argument("--id", required=True, help="Barber ID")
    p_barber.add_argument("--name", required=True, help="Display name")
    p_barber.add_argument("--inactive", action="store_true", help="Register as inactive")

    # deactivate-barber
    p_deact = sub.add_parser("deactivate-barber", help="Deactivate (or re-activate) a barber")
    p_deact.add_argument("--id", required=True, help="Barber ID")
    p_deact.add_argument("--activate", action="store_true", help="Re-activate instead")

    # add-service
    p_service = sub.add_parser("add-service", help="Register a catalog service")
    p_service.add_argument("--id", required=True, help="Service ID")
    p_service.add_argument("--name", required=True, help="Service name")
    p_service.add_argument("--minutes", type=int, required=True, help="Minutes per unit")
    p_service.add_argument(
        "--not-subscription", action="store_true",
        help="Service is not covered by subscriptions",
    )

    # record-service / pass-turn
    for name, help_text in (
        ("record-service", "Count a manual service in the rotation"),
        ("pass-turn", "Record that a barber passed their turn"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--barber", required=True, help="Barber ID")
        p.add_argument("--date", help="Date YYYY-MM-DD (default: today)")
        p.add_argument("--month", help="Open month YYYY-MM (default: current month)")

    # correct-services
    p_correct = sub.add_parser("correct-services", help="Append a compensating service count")
    p_correct.add_argument("--barber", required=True, help="Barber ID")
    p_correct.add_argument("--delta", type=int, required=True, help="Count change, e.g. -1")
    p_correct.add_argument("--date", help="Date YYYY-MM-DD (default: today)")
    p_correct.add_argument("--month", help="Open month YYYY-MM (default: current month)")

    # log-service
    p_log = sub.add_parser("log-service", help="Log a performed service for commission")
    p_log.add_argument("--barber", required=True, help="Barber ID")
    p_log.add_argument("--service", required=True, help="Service ID")
    p_log.add_argument("--quantity", type=int, default=1, help="Units performed (default: 1)")
    p_log.add_argument("--date", help="Date YYYY-MM-DD (default: today)")

    # rank / position
    p_rank = sub.add_parser("rank", help="Show the monthly queue")
    p_rank.add_argument("--month", help="Month YYYY-MM (default: current month)")
    p_pos = sub.add_parser("position", help="Show one barber's queue position")
    p_pos.add_argument("--barber", required=True, help="Barber ID")
    p_pos.add_argument("--month", help="Month YYYY-MM (default: current month)")

    # commission / export-commission
    for name, help_text in (
        ("commission", "Compute the monthly commission distribution"),
        ("export-commission", "Export the monthly commission distribution as CSV"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--month", required=True, help="Month YYYY-MM")
        p.add_argument("--revenue", required=True, help="Total subscription revenue (Decimal)")
        p.add_argument("--pct", help="Commission fraction, e.g. 0.40 (default: policy)")
        if name == "commission":
            p.add_argument("--barber", help="Only this barber's result")
        else:
            p.add_argument("--output", help="Write CSV to this file instead of stdout")

    # commission-history
    p_hist = sub.add_parser("commission-history", help="Show commission totals for recent months")
    p_hist.add_argument("--month", help="Last month YYYY-MM (default: current month)")
    p_hist.add_argument("--months", type=int, default=12, help="Number of months (default: 12)")
    p_hist.add_argument(
        "--revenue", action="append",
        help="Monthly revenue as YYYY-MM=amount (repeatable; missing months count as 0)",
    )
    p_hist.add_argument("--pct", help="Commission fraction, e.g. 0.40 (default: policy)")

    # day
    p_day = sub.add_parser("day", help="Show each barber's activity on one date")
    p_day.add_argument("--date", help="Date YYYY-MM-DD (default: today)")

    # check-invariants
    sub.add_parser("check-invariants", help="Validate the policy configuration")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "add-barber": cmd_add_barber,
        "deactivate-barber": cmd_deactivate_barber,
        "add-service": cmd_add_service,
        "record-service": cmd_record_service,
        "pass-turn": cmd_pass_turn,
        "correct-services": cmd_correct_services,
        "log-service": cmd_log_service,
        "rank": cmd_rank,
        "position": cmd_position,
        "commission": cmd_commission,
        "export-commission": cmd_export_commission,
        "commission-history": cmd_commission_history,
        "day": cmd_day,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        # Bad --date values and invalid policy files
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
