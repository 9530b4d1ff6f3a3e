#!/usr/bin/env python3
"""Seed a JSON loan store with sample loans and print the dashboard.

Usage:
    python scripts/generate_sample_data.py --loans 8
    python scripts/generate_sample_data.py --output local/emis.json --manual 2
"""

import argparse
import logging
from datetime import date
from pathlib import Path

from emi_tracker.config import StorageConfig, TrackerConfig
from emi_tracker.exceptions import PaymentError
from emi_tracker.factory import build_repository
from emi_tracker.generators import SampleLoanGenerator
from emi_tracker.logging import LOG_FORMATS, configure_logging
from emi_tracker.models.enums import TrackingMode
from emi_tracker.portfolio import DashboardSummary, LoanPortfolio

logger = logging.getLogger(__name__)


def print_summary(summary: DashboardSummary, output: Path) -> None:
    """Print dashboard figures."""
    print("\n" + "=" * 60)
    print(f"Dashboard as of {summary.as_of.isoformat()}")
    print("=" * 60)
    print(f"{'Loans:':28}{summary.total_loans}")
    print(f"{'Active / completed:':28}{summary.active_loans} / {summary.completed_loans}")
    print(f"{'Monthly installments:':28}{summary.total_monthly_installment:,.2f}")
    print(f"{'Total contracted:':28}{summary.total_contract_amount:,.2f}")
    print(f"{'Total paid:':28}{summary.total_paid:,.2f}")
    print(
        f"{'This month paid / due:':28}{summary.current_month_paid:,.2f} / "
        f"{summary.current_month_due:,.2f} ({summary.current_month_progress:.0f}%)"
    )
    if summary.upcoming:
        print("\nUpcoming this month:")
        for snap in summary.upcoming:
            print(
                f"  {snap.next_payment_date.isoformat()}  {snap.loan.name:40} "
                f"{snap.installment_amount:>12,.2f}  "
                f"({snap.current_installment}/{snap.tenure})"
            )
    print(f"\nLoans saved to: {output}")
    print("=" * 60)


def main() -> None:
    """Generate sample loans."""
    parser = argparse.ArgumentParser(description="Seed a loan store with sample EMIs")
    parser.add_argument(
        "--loans",
        type=int,
        default=8,
        help="Number of date-driven loans to generate (default: 8)",
    )
    parser.add_argument(
        "--manual",
        type=int,
        default=2,
        help="Number of manually tracked loans to generate and pay once (default: 2)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducibility (default: 42)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("local") / "emis.json",
        help="JSON store file (default: local/emis.json)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default="standard",
        help="Log format (default: standard)",
    )
    args = parser.parse_args()

    config = TrackerConfig(
        storage=StorageConfig(backend="json", json_path=args.output, pretty_json=True),
        log_level=args.log_level,
        log_format=args.log_format,
        seed=args.seed,
    )
    configure_logging(config)

    repository = build_repository(config)
    generator = SampleLoanGenerator(seed=config.seed)
    today = date.today()

    for new_loan in generator.generate_batch(args.loans, today):
        repository.add_loan(new_loan)

    for _ in range(args.manual):
        loan = repository.add_loan(generator.generate(today, tracking=TrackingMode.MANUAL))
        try:
            repository.mark_installment_paid(loan.loan_id)
        except PaymentError as exc:
            logger.info("Skipped payment for %s: %s", loan.name, exc)

    print_summary(LoanPortfolio(repository).summary(), args.output)
    repository.close()
    repository.engine.close()


if __name__ == "__main__":
    main()
