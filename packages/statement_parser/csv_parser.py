"""CSV reconstructor: recover the transaction table from delimited text.

Bank CSV exports often carry letterhead, account details and disclaimers
above the real table, and sometimes repeat the header mid-file. Rows are
read without assuming a header, the header is located by heuristic, and the
rows beneath it are fed to the field normalizer.
"""

import csv
import io

import structlog

from .account_type import infer_account_type
from .core.config import get_settings
from .models import ParseContext, ParseResult, ParseWarning, build_metadata
from .normalize import normalize_record
from .tabular import HEADER_HINT, find_header_row, records_after_header

logger = structlog.get_logger(__name__)

CANDIDATE_DELIMITERS = ",;\t|"


def _detect_delimiter(text: str) -> str:
    sample = "\n".join(text.splitlines()[:50])
    try:
        return csv.Sniffer().sniff(sample, delimiters=CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        return ","


async def parse_csv(context: ParseContext) -> ParseResult:
    """Parse a CSV statement into transactions plus warnings."""
    account_type = context.account_type or infer_account_type(context.file.name)
    file_name = context.file.name
    settings = get_settings()

    text = context.file.text(settings.csv_encodings)
    warnings = []

    if not text.strip():
        warnings.append(ParseWarning(message="The file appears to be empty."))
        return ParseResult([], warnings, build_metadata([], account_type))

    delimiter = _detect_delimiter(text)
    try:
        rows = list(csv.reader(io.StringIO(text, newline=""), delimiter=delimiter))
    except csv.Error as e:
        warnings.append(
            ParseWarning(
                message=f"Unable to read CSV content: {e}",
                context={"code": "CsvError"},
            )
        )
        return ParseResult([], warnings, build_metadata([], account_type))

    grid = [[cell.strip() for cell in row] for row in rows]

    header_index = find_header_row(grid)
    if header_index is None:
        logger.info("csv_header_not_found", file_name=file_name, rows=len(grid))
        warnings.append(
            ParseWarning(message=HEADER_HINT, context={"rows_scanned": len(grid)})
        )
        return ParseResult([], warnings, build_metadata([], account_type))

    records, row_warnings = records_after_header(grid, header_index)
    warnings.extend(row_warnings)

    transactions = []
    for record in records:
        outcome = normalize_record(record, file_name, account_type)
        warnings.extend(outcome.warnings)
        if outcome.transaction:
            transactions.append(outcome.transaction)

    logger.info(
        "csv_parsed",
        file_name=file_name,
        header_row=header_index + 1,
        records=len(records),
        transactions=len(transactions),
    )
    return ParseResult(transactions, warnings, build_metadata(transactions, account_type))
