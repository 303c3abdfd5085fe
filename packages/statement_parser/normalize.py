"""
Field normalizer - maps a raw statement record onto a Transaction.

Records arrive from the CSV, Excel and PDF reconstructors as ordered
mappings of header text to cell value, with whatever vocabulary the bank
used. Resolution happens in two phases over each raw key:

1. exact match against ordered candidate lists (``EXACT_RULES``),
2. substring markers for keys no exact list claimed (``SUBSTRING_RULES``).

The first column assigned to a slot wins; later columns for the same slot
are ignored. Records that cannot produce a date, description and amount are
rejected with a ``ParseWarning`` rather than a half-filled transaction.
"""

import re
import uuid
import warnings as pywarnings
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
import structlog

from .models import AccountType, ParseWarning, Transaction, TransactionType

logger = structlog.get_logger(__name__)


class Slot(str, Enum):
    DATE = "date"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    CREDIT = "credit"
    DEBIT = "debit"
    TYPE = "type"
    ACCOUNT_NUMBER = "account_number"
    BANK_NAME = "bank_name"


@dataclass(frozen=True)
class SlotRule:
    """Header vocabulary for one slot.

    ``candidates`` are compared for equality in the exact phase and as
    substrings in the fallback phase; a key containing any of ``excludes``
    never matches.
    """

    slot: Slot
    candidates: Tuple[str, ...]
    excludes: Tuple[str, ...] = ()


DATE_CANDIDATES = (
    "date",
    "transaction date",
    "posting date",
    "value date",
    "statement date",
    "txn date",
    "trans date",
    "tran date",
    "value dt",
    "txn dt",
)

DESCRIPTION_CANDIDATES = (
    "description",
    "details",
    "narration",
    "merchant",
    "particulars",
    "memo",
    "transaction details",
    "trans details",
    "transaction description",
    "remarks",
    "purpose",
    "payee",
)

AMOUNT_CANDIDATES = ("amount", "transaction amount", "amt", "value", "trans amount")

CREDIT_CANDIDATES = ("credit", "cr", "cr amount", "credits", "credit amt")
DEBIT_CANDIDATES = ("debit", "dr", "dr amount", "debits", "debit amt")
WITHDRAWAL_CANDIDATES = (
    "withdrawal amt.",
    "withdrawal amount",
    "withdrawal",
    "withdrawals",
    "withdrawal amt",
)
DEPOSIT_CANDIDATES = (
    "deposit amt.",
    "deposit amount",
    "deposit",
    "deposits",
    "deposit amt",
)

TYPE_CANDIDATES = ("type", "transaction type", "debit/credit", "dr/cr")

ACCOUNT_NUMBER_CANDIDATES = (
    "account number",
    "account no",
    "account no.",
    "acct no",
    "acct no.",
    "acct #",
    "account #",
    "account id",
)

BANK_NAME_CANDIDATES = (
    "bank name",
    "issuing bank",
    "financial institution",
    "institution",
    "bank",
    "bank branch",
)

EXACT_RULES: Tuple[SlotRule, ...] = (
    SlotRule(Slot.DATE, DATE_CANDIDATES),
    SlotRule(Slot.DESCRIPTION, DESCRIPTION_CANDIDATES),
    SlotRule(Slot.AMOUNT, AMOUNT_CANDIDATES),
    SlotRule(Slot.CREDIT, CREDIT_CANDIDATES),
    SlotRule(Slot.DEBIT, DEBIT_CANDIDATES + WITHDRAWAL_CANDIDATES),
    SlotRule(Slot.CREDIT, DEPOSIT_CANDIDATES),
    SlotRule(Slot.TYPE, TYPE_CANDIDATES),
    SlotRule(Slot.ACCOUNT_NUMBER, ACCOUNT_NUMBER_CANDIDATES),
    SlotRule(Slot.BANK_NAME, BANK_NAME_CANDIDATES),
)

SUBSTRING_RULES: Tuple[SlotRule, ...] = (
    SlotRule(Slot.DATE, ("date",)),
    SlotRule(
        Slot.DESCRIPTION,
        ("description", "narration", "detail", "particulars", "remark"),
    ),
    SlotRule(Slot.ACCOUNT_NUMBER, ("account number", "acct no", "account #")),
    SlotRule(Slot.BANK_NAME, ("bank",), excludes=("bank statement",)),
    SlotRule(Slot.CREDIT, ("credit", "deposit")),
    SlotRule(Slot.DEBIT, ("debit", "withdrawal")),
    SlotRule(Slot.AMOUNT, ("amount", "amt")),
)

# Cell values that mean an unfiltered copy of the header row reached us.
HEADER_ECHOES = {"date", "narration", "value dt"}

ISO_FORMAT = "%Y-%m-%d"

# Tried in order once the day-first delimiter form has failed.
DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M:%S",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
    "%m/%d/%y",
    "%d-%m-%y",
    "%m-%d-%y",
    "%d.%m.%y",
    "%d %b %Y",
    "%d-%b-%Y",
    "%d %b %y",
    "%d-%b-%y",
    "%b %d %Y",
    "%d %B %Y",
    "%B %d %Y",
]

DELIMITED_DATE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")
AMOUNT_NUMBER = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")

# "Rs." and "INR" carry letters and a dot that would otherwise leak into the number.
CURRENCY_PREFIX = re.compile(r"^([-+]?)\s*(?:rs\.?|inr|[₹$€£¥])(?![a-z])\s*", re.IGNORECASE)
CURRENCY_SUFFIX = re.compile(r"(?<![a-z])\s*(?:rs\.?|inr|[₹$€£¥])$", re.IGNORECASE)


@dataclass
class NormalizationOutcome:
    transaction: Optional[Transaction]
    warnings: List[ParseWarning] = field(default_factory=list)


def _text(value: Any) -> str:
    """Render a raw cell as trimmed text; missing cells become ''."""
    if value is None:
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""
    return str(value).strip()


def strip_currency(text: str) -> str:
    """Drop a leading or trailing currency marker (Rs., INR, ₹ ...)."""
    text = CURRENCY_PREFIX.sub(r"\1", text.strip())
    return CURRENCY_SUFFIX.sub("", text)


def _row_context(raw: Mapping[str, Any]) -> Dict[str, str]:
    return {str(key): _text(value) for key, value in raw.items()}


def _match_slot(
    key: str, rules: Tuple[SlotRule, ...], filled: Mapping[Slot, Any], exact: bool
) -> Optional[Slot]:
    for rule in rules:
        if rule.slot in filled:
            continue
        if any(marker in key for marker in rule.excludes):
            continue
        if exact:
            hit = key in rule.candidates
        else:
            hit = any(marker in key for marker in rule.candidates)
        if hit:
            return rule.slot
    return None


def resolve_fields(raw: Mapping[str, Any]) -> Dict[Slot, Any]:
    """Assign raw columns to canonical slots, first-seen column winning."""
    resolved: Dict[Slot, Any] = {}

    for key, value in raw.items():
        normalized_key = str(key).strip().lower()
        slot = _match_slot(normalized_key, EXACT_RULES, resolved, exact=True)
        if slot is None:
            slot = _match_slot(normalized_key, SUBSTRING_RULES, resolved, exact=False)
        if slot is not None:
            resolved[slot] = value

    return resolved


def _pivot_two_digit_year(year: int) -> int:
    return 1900 + year if year >= 70 else 2000 + year


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_delimited(text: str) -> Optional[date]:
    match = DELIMITED_DATE.match(text)
    if not match:
        return None

    day, month, year = match.groups()
    if len(year) == 2:
        full_year = _pivot_two_digit_year(int(year))
    elif len(year) == 4:
        full_year = int(year)
    else:
        return None

    return _safe_date(full_year, int(month), int(day))


def _parse_with_formats(text: str) -> Optional[date]:
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if "%y" in fmt:
            # strptime pivots at 69; statements use 70.
            year = _pivot_two_digit_year(parsed.year % 100)
            return _safe_date(year, parsed.month, parsed.day)
        return parsed.date()
    return None


def _parse_digits(text: str) -> Optional[date]:
    digits = re.sub(r"\D", "", text)

    if len(digits) == 8:
        year = int(digits[:4])
        if year < 1900:
            year += 2000
        return _safe_date(year, int(digits[4:6]), int(digits[6:]))

    if len(digits) == 6:
        year = _pivot_two_digit_year(int(digits[4:]))
        return _safe_date(year, int(digits[2:4]), int(digits[:2]))

    return None


def _parse_generic(text: str) -> Optional[date]:
    with pywarnings.catch_warnings():
        pywarnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, dayfirst=True)
        except (ValueError, OverflowError, TypeError):
            return None

    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_date(value: Any) -> Optional[str]:
    """Canonicalize a statement date to ``yyyy-mm-dd``.

    Strategies, first success wins:
    day-first ``D/M/Y`` with ``/``, ``-`` or ``.`` separators, the explicit
    templates in ``DATE_FORMATS``, a digits-only ``yyyymmdd``/``ddmmyy``
    reading, and finally pandas' generic parser. Two-digit years pivot at
    1970. Returns None when nothing fits.
    """
    if isinstance(value, (datetime, date)) and not pd.isna(value):
        return value.strftime(ISO_FORMAT)

    text = _text(value)
    if not text:
        return None

    for strategy in (_parse_delimited, _parse_with_formats, _parse_digits, _parse_generic):
        parsed = strategy(text)
        if parsed is not None:
            return parsed.strftime(ISO_FORMAT)

    return None


def _to_number(value: Any) -> Optional[float]:
    """Parse an amount cell, ignoring currency symbols and separators."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if pd.isna(value) else float(value)

    cleaned = re.sub(r"[^0-9.\-]+", "", strip_currency(_text(value)))
    if not AMOUNT_NUMBER.fullmatch(cleaned):
        return None
    return float(cleaned)


def resolve_type_label(value: Any) -> Optional[TransactionType]:
    normalized = _text(value).lower()
    if "debit" in normalized or "dr" in normalized:
        return TransactionType.DEBIT
    if "credit" in normalized or "cr" in normalized:
        return TransactionType.CREDIT
    return None


def parse_amount(
    resolved: Mapping[Slot, Any],
) -> Tuple[Optional[float], Optional[TransactionType], List[ParseWarning]]:
    """Resolve magnitude and direction from the amount-bearing slots.

    1. a single amount column, signed (negative means debit);
    2. split credit/debit (deposit/withdrawal) columns, first non-zero wins;
    3. a single amount column qualified by a DR/CR type label.

    Steps are not strictly first-success-wins: step 1 always succeeds on
    a parseable amount, so an unsigned (zero or positive) single amount
    with a recognizable type label is resolved by step 3 ahead of step 1.
    A negative amount keeps its sign direction whatever the label says.
    Returns ``(None, None, warnings)`` when no strategy yields an amount.
    """
    warnings: List[ParseWarning] = []

    single = resolved.get(Slot.AMOUNT)
    label = (
        resolve_type_label(resolved[Slot.TYPE]) if Slot.TYPE in resolved else None
    )

    if Slot.AMOUNT in resolved:
        value = _to_number(single)
        if value is not None:
            if label is not None and value >= 0:
                return abs(value), label, warnings
            direction = TransactionType.CREDIT if value >= 0 else TransactionType.DEBIT
            return abs(value), direction, warnings
        if _text(single):
            warnings.append(
                ParseWarning(
                    message="Unable to parse amount column.",
                    context={"value": _text(single)},
                )
            )

    for slot, direction in (
        (Slot.CREDIT, TransactionType.CREDIT),
        (Slot.DEBIT, TransactionType.DEBIT),
    ):
        if slot not in resolved:
            continue
        value = _to_number(resolved[slot])
        if value is not None and value != 0:
            return abs(value), direction, warnings

    return None, None, warnings


def normalize_record(
    raw: Mapping[str, Any], file_name: str, account_type: AccountType
) -> NormalizationOutcome:
    """Turn one raw record into a Transaction, or explain why it cannot.

    Pure: the same record always yields an equal transaction apart from
    ``id``, which is freshly generated on every call.
    """
    outcome = NormalizationOutcome(transaction=None)

    if all(_text(value) == "" for value in raw.values()):
        return outcome

    resolved = resolve_fields(raw)
    raw_date = _text(resolved.get(Slot.DATE))
    description = _text(resolved.get(Slot.DESCRIPTION))
    available_columns = [str(key) for key in raw.keys()]

    missing = []
    if not raw_date:
        missing.append("date")
    if not description:
        missing.append("description")

    if missing:
        outcome.warnings.append(
            ParseWarning(
                message=(
                    f"Missing required fields: {', '.join(missing)}. "
                    f"Available columns: {', '.join(available_columns)}"
                ),
                context={
                    "raw": _row_context(raw),
                    "available_columns": available_columns,
                    "missing_fields": missing,
                },
            )
        )
        logger.debug("record_rejected", missing=missing)
        return outcome

    if raw_date.lower() in HEADER_ECHOES or description.lower() in HEADER_ECHOES:
        outcome.warnings.append(
            ParseWarning(
                message="Skipped a repeated header row.",
                context={"available_columns": available_columns},
            )
        )
        return outcome

    parsed_date = parse_date(resolved[Slot.DATE])
    if parsed_date is None:
        outcome.warnings.append(
            ParseWarning(
                message="Unable to parse transaction date.",
                context={"raw_date": raw_date},
            )
        )

    amount, direction, amount_warnings = parse_amount(resolved)
    outcome.warnings.extend(amount_warnings)

    if amount is None or direction is None:
        outcome.warnings.append(
            ParseWarning(
                message="Unable to resolve transaction amount.",
                context={"raw": _row_context(raw)},
            )
        )
        logger.debug("record_rejected", reason="amount")
        return outcome

    outcome.transaction = Transaction(
        id=str(uuid.uuid4()),
        date=parsed_date or raw_date,
        raw_date=raw_date,
        description=description,
        amount=amount,
        type=direction,
        account_type=AccountType(account_type),
        source_file_name=file_name,
        bank_name=_text(resolved.get(Slot.BANK_NAME)) or None,
        account_number=_text(resolved.get(Slot.ACCOUNT_NUMBER)) or None,
    )
    return outcome
