"""
PDF reconstructor - rebuild statement rows from positioned text.

PDF statements have no machine-readable grid, only text placed on a page.
For every page the reconstructor:

1. extracts text spans with their x/y position (pdfplumber),
2. clusters spans into visual lines by rounded y, top to bottom,
3. joins each line left to right, marking wide horizontal gaps as column
   breaks,
4. splits the line into segments on column breaks (two or more spaces or
   tabs; a single space is a word break inside a field),
5. reads the rightmost numeric segment as the amount, the first segment as
   the date, the segments in between as the description and the segment
   after the amount, if any, as a DR/CR type label.

Statements laid out with single-space separated fixed-width columns are not
recoverable this way and surface as per-line warnings.

This module is imported lazily by the orchestrator; pdfplumber is the
heaviest dependency of the parser.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import pdfplumber
import structlog

from .account_type import infer_account_type
from .core.config import get_settings
from .core.errors import UnreadableStatementError
from .models import ParseContext, ParseResult, ParseWarning, build_metadata
from .normalize import normalize_record, strip_currency

logger = structlog.get_logger(__name__)

COLUMN_BREAK = "\t"
SEGMENT_SPLIT = re.compile(r"\s{2,}|\t+")
WHITESPACE = re.compile(r"\s+")
AMOUNT_SEGMENT = re.compile(r"[-+]?\d[\d,]*(?:\.\d{1,2})?")


@dataclass(frozen=True)
class TextSpan:
    """A run of text on a page; ``y`` grows upwards from the page bottom."""

    x0: float
    x1: float
    y: float
    text: str


def extract_spans(page, x_tolerance: float) -> List[TextSpan]:
    """Positioned text spans of one pdfplumber page, in PDF coordinates."""
    words = page.extract_words(keep_blank_chars=True, x_tolerance=x_tolerance)
    return [
        TextSpan(
            x0=float(word["x0"]),
            x1=float(word["x1"]),
            y=float(page.height) - float(word["bottom"]),
            text=word["text"],
        )
        for word in words
    ]


def _collapse(text: str) -> str:
    # Whitespace runs inside a span are column gaps in fixed-width layouts.
    return re.sub(r"\s{2,}", COLUMN_BREAK, text.strip())


def group_lines(spans: Iterable[TextSpan], column_gap: float) -> List[str]:
    """Cluster spans into visual lines, ordered top to bottom."""
    rows: Dict[int, List[TextSpan]] = {}
    for span in spans:
        if not span.text.strip():
            continue
        rows.setdefault(round(span.y), []).append(span)

    lines = []
    for y in sorted(rows, reverse=True):
        parts: List[str] = []
        previous: Optional[TextSpan] = None
        for span in sorted(rows[y], key=lambda s: s.x0):
            if previous is not None:
                gap = span.x0 - previous.x1
                parts.append(COLUMN_BREAK if gap >= column_gap else " ")
            parts.append(_collapse(span.text))
            previous = span

        line = "".join(parts).strip()
        if line:
            lines.append(line)

    return lines


def split_segments(line: str) -> List[str]:
    return [segment.strip() for segment in SEGMENT_SPLIT.split(line) if segment.strip()]


def _is_amount(segment: str) -> bool:
    return AMOUNT_SEGMENT.fullmatch(WHITESPACE.sub("", strip_currency(segment))) is not None


def parse_line(line: str) -> Optional[Dict[str, str]]:
    """Interpret one visual line as ``{date, description, amount[, type]}``.

    Returns None when the line does not have the shape of a transaction row.
    """
    segments = split_segments(line)
    if len(segments) < 2:
        return None

    amount_index = -1
    for index in range(len(segments) - 1, -1, -1):
        if _is_amount(segments[index]):
            amount_index = index
            break

    if amount_index < 1:
        return None

    description_parts = segments[1:amount_index]
    if not description_parts:
        return None

    record = {
        "date": segments[0],
        "description": " ".join(description_parts),
        "amount": segments[amount_index],
    }
    if amount_index + 1 < len(segments):
        record["type"] = segments[amount_index + 1]
    return record


async def parse_pdf(context: ParseContext) -> ParseResult:
    """Parse a text-layer PDF statement into transactions plus warnings."""
    account_type = context.account_type or infer_account_type(context.file.name)
    file_name = context.file.name
    settings = get_settings()

    warnings: List[ParseWarning] = []
    records: List[Dict[str, str]] = []
    span_count = 0

    try:
        pdf = pdfplumber.open(context.file.buffer())
    except Exception as e:
        raise UnreadableStatementError(f"Could not read PDF file: {e}") from e

    with pdf:
        for page_number, page in enumerate(pdf.pages, start=1):
            try:
                spans = extract_spans(page, settings.PDF_X_TOLERANCE)
            except Exception as e:
                raise UnreadableStatementError(
                    f"Could not extract text from page {page_number}: {e}"
                ) from e

            span_count += len(spans)
            lines = group_lines(spans, settings.PDF_COLUMN_GAP)

            for line in lines:
                record = parse_line(line)
                if record:
                    records.append(record)
                else:
                    warnings.append(
                        ParseWarning(
                            message="Unable to interpret PDF row.",
                            context={"line": line, "page_number": page_number},
                        )
                    )

            logger.debug("pdf_page_processed", page=page_number, lines=len(lines))
            # Let other files in the batch progress between pages.
            await asyncio.sleep(0)

    if span_count == 0:
        warnings.append(
            ParseWarning(
                message="No extractable text found. Scanned statements are not supported.",
                context={"code": "NoTextLayer"},
            )
        )

    transactions = []
    for record in records:
        outcome = normalize_record(record, file_name, account_type)
        warnings.extend(outcome.warnings)
        if outcome.transaction:
            transactions.append(outcome.transaction)

    logger.info(
        "pdf_parsed",
        file_name=file_name,
        records=len(records),
        transactions=len(transactions),
    )
    return ParseResult(transactions, warnings, build_metadata(transactions, account_type))
