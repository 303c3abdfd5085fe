"""
Command-line entry point: parse local statement files and report.

Examples:
  statement-parser jan.csv feb.xlsx
  statement-parser hdfc_cc.pdf --account-type credit-card --show-transactions
  statement-parser locked.xlsx --password secret --json
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional, Sequence, Tuple, Union

import structlog
from tabulate import tabulate

from .core.config import get_settings
from .core.errors import StatementParseError
from .core.logging import setup_logging
from .models import AccountType, ParsedStatement, StatementFile, summarize
from .parser import parse_statement_file

logger = structlog.get_logger(__name__)

Outcome = Union[ParsedStatement, StatementParseError]


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="statement-parser",
        description="Parse bank and credit-card statements (CSV, Excel, PDF) into transactions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("files", nargs="+", help="Statement files to parse")
    parser.add_argument(
        "--account-type",
        choices=[a.value for a in AccountType],
        help="Account type for every file (default: inferred from the file name)",
    )
    parser.add_argument("--password", help="Password for encrypted Excel statements")
    parser.add_argument(
        "--show-transactions", action="store_true", help="Print parsed transactions"
    )
    parser.add_argument(
        "--show-warnings", action="store_true", help="Print parse warnings"
    )
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--log-level", help="Log level (default: LOG_LEVEL setting)")
    return parser


async def _parse_one(
    path: str, account_type: Optional[AccountType], password: Optional[str]
) -> Tuple[str, Outcome]:
    try:
        file = StatementFile.from_path(path)
    except OSError as e:
        return path, StatementParseError(str(e), error_type="file_not_readable")

    try:
        return path, await parse_statement_file(file, account_type, password)
    except StatementParseError as e:
        logger.error("statement_parse_failed", file_name=file.name, error=e.detail)
        return path, e


async def run(
    paths: Sequence[str],
    account_type: Optional[AccountType] = None,
    password: Optional[str] = None,
) -> List[Tuple[str, Outcome]]:
    """Parse every path concurrently, keeping failures per file."""
    return list(
        await asyncio.gather(*(_parse_one(p, account_type, password) for p in paths))
    )


def print_report(
    outcomes: Sequence[Tuple[str, Outcome]], show_transactions: bool, show_warnings: bool
) -> None:
    summary_table = []
    for path, outcome in outcomes:
        if isinstance(outcome, StatementParseError):
            summary_table.append([path, "-", "-", "-", "-", "error", outcome.detail])
            continue
        summary = summarize(outcome)
        summary_table.append(
            [
                summary.file_name,
                summary.format.value,
                summary.account_type.value,
                summary.bank_name or "",
                summary.account_number or "",
                summary.transaction_count,
                len(summary.warnings),
            ]
        )

    print(
        tabulate(
            summary_table,
            headers=["File", "Format", "Account Type", "Bank", "Account", "Transactions", "Warnings"],
            tablefmt="simple",
        )
    )

    for path, outcome in outcomes:
        if isinstance(outcome, StatementParseError):
            continue

        if show_transactions and outcome.transactions:
            print(f"\n{outcome.file_name}:\n")
            print(
                tabulate(
                    [
                        [t.date, t.description, f"{t.amount:.2f}", t.type.value]
                        for t in outcome.transactions
                    ],
                    headers=["Date", "Description", "Amount", "Type"],
                    tablefmt="simple",
                )
            )

        if show_warnings and outcome.warnings:
            print(f"\n{outcome.file_name} warnings:")
            for warning in outcome.warnings:
                print(f"  • {warning.message}")


def outcomes_to_json(outcomes: Sequence[Tuple[str, Outcome]]) -> str:
    payload = []
    for path, outcome in outcomes:
        if isinstance(outcome, StatementParseError):
            payload.append(
                {"file": path, "error": outcome.detail, "error_type": outcome.error_type}
            )
        else:
            payload.append(outcome.to_dict())
    return json.dumps(payload, indent=2, ensure_ascii=False)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level, json_output=settings.json_logs)

    account_type = AccountType(args.account_type) if args.account_type else None
    outcomes = asyncio.run(run(args.files, account_type, args.password))

    if args.json:
        print(outcomes_to_json(outcomes))
    else:
        print_report(outcomes, args.show_transactions, args.show_warnings)

    failed = any(isinstance(outcome, StatementParseError) for _, outcome in outcomes)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
