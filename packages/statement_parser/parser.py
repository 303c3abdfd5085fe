"""
Statement orchestrator.

Routes each uploaded file to the reconstructor for its format and tags the
result with that format and the file name. Batches run every file
concurrently and keep results in input order.
"""

import asyncio
import importlib
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog

from .account_type import infer_account_type
from .csv_parser import parse_csv
from .detect_file_type import detect_statement_format
from .excel_parser import parse_excel
from .models import (
    AccountType,
    ParseContext,
    ParsedStatement,
    ParseResult,
    ParseWarning,
    StatementFile,
    StatementFormat,
    build_metadata,
)

logger = structlog.get_logger(__name__)

Reconstructor = Callable[[ParseContext], Awaitable[ParseResult]]


async def _parse_pdf(context: ParseContext) -> ParseResult:
    # pdfplumber is only imported once a PDF actually shows up.
    pdf_parser = importlib.import_module(".pdf_parser", __package__)
    return await pdf_parser.parse_pdf(context)


async def _unsupported(context: ParseContext) -> ParseResult:
    return ParseResult(
        transactions=[],
        warnings=[ParseWarning(message="Unsupported file format.")],
        metadata=build_metadata([], context.account_type),
    )


def resolve_parser(fmt: StatementFormat) -> Reconstructor:
    """Return the reconstructor coroutine function for a statement format."""
    if fmt == StatementFormat.CSV:
        return parse_csv
    if fmt == StatementFormat.EXCEL:
        return parse_excel
    if fmt == StatementFormat.PDF:
        return _parse_pdf
    return _unsupported


async def parse_statement_file(
    file: StatementFile,
    account_type: Optional[AccountType] = None,
    password: Optional[str] = None,
) -> ParsedStatement:
    """Parse one statement file.

    ``account_type`` overrides the type inferred from the file name;
    ``password`` is used for encrypted Excel workbooks.

    Raises StatementParseError when the file cannot be read at all.
    """
    fmt = detect_statement_format(file)
    resolved_account_type = AccountType(account_type or infer_account_type(file.name))
    log = logger.bind(file_name=file.name, format=fmt.value)
    log.info("statement_parse_started", account_type=resolved_account_type.value)

    context = ParseContext(
        file=file, account_type=resolved_account_type, password=password
    )
    result = await resolve_parser(fmt)(context)

    log.info(
        "statement_parse_finished",
        transactions=len(result.transactions),
        warnings=len(result.warnings),
    )
    return ParsedStatement(
        transactions=result.transactions,
        warnings=result.warnings,
        metadata=result.metadata,
        format=fmt,
        file_name=file.name,
    )


async def parse_statement_files(
    files: Sequence[StatementFile],
    account_type: Optional[AccountType] = None,
    password: Optional[str] = None,
) -> List[ParsedStatement]:
    """Parse a batch concurrently. The first hard failure propagates."""
    results = await asyncio.gather(
        *(parse_statement_file(f, account_type, password) for f in files)
    )
    return list(results)
