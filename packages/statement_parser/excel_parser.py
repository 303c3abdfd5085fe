import io
from typing import Optional

import msoffcrypto
import pandas as pd
import structlog

from .account_type import infer_account_type
from .core.config import get_settings
from .core.errors import UnreadableStatementError, WorkbookDecryptionError
from .models import ParseContext, ParseResult, ParseWarning, build_metadata
from .normalize import normalize_record
from .tabular import HEADER_HINT, find_header_row, records_after_header, to_grid

logger = structlog.get_logger(__name__)

# OLE2 Compound Document magic bytes: legacy .xls and encrypted .xlsx both use this container
_OLE2_MAGIC = b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1"


def _is_ole2(file_content: bytes) -> bool:
    """Check if file starts with the OLE2 magic bytes."""
    return file_content[:8] == _OLE2_MAGIC


def _open_workbook(file_content: bytes, password: Optional[str]) -> Optional[io.BytesIO]:
    """
    Return a readable workbook stream, decrypting it when needed.
    Returns None when the workbook is encrypted and no password was given.
    """
    if not _is_ole2(file_content):
        # Plain .xlsx (ZIP-based OOXML), no decryption needed
        return io.BytesIO(file_content)

    decrypted_workbook = io.BytesIO()
    with io.BytesIO(file_content) as f:
        try:
            office_file = msoffcrypto.OfficeFile(f)
            encrypted = office_file.is_encrypted()
        except Exception as e:
            raise UnreadableStatementError(f"Could not read Excel container: {e}") from e

        if not encrypted:
            # Legacy .xls
            return io.BytesIO(file_content)

        if not password:
            return None

        try:
            office_file.load_key(password=password)
            office_file.decrypt(decrypted_workbook)
        except Exception as e:
            msg = str(e).lower()
            if "password" in msg or "key" in msg or "verif" in msg:
                raise WorkbookDecryptionError("Invalid password") from e
            raise WorkbookDecryptionError(f"Failed to decrypt file: {e}") from e

    decrypted_workbook.seek(0)
    return decrypted_workbook


async def parse_excel(context: ParseContext) -> ParseResult:
    """
    Parses an Excel statement (first worksheet only) into transactions.
    The header row is located anywhere in the sheet: rows above it are
    letterhead, rows below it are mapped onto the header's column names.
    """
    account_type = context.account_type or infer_account_type(context.file.name)
    file_name = context.file.name
    password = context.password or get_settings().STATEMENT_PASSWORD
    warnings = []

    workbook_stream = _open_workbook(context.file.content, password)
    if workbook_stream is None:
        warnings.append(
            ParseWarning(
                message="Workbook is password protected. Provide the statement password to parse it.",
                context={"code": "PasswordRequired"},
            )
        )
        return ParseResult([], warnings, build_metadata([], account_type))

    try:
        workbook = pd.ExcelFile(workbook_stream)
    except Exception as e:
        raise UnreadableStatementError(f"Could not read Excel file: {e}") from e

    with workbook:
        if not workbook.sheet_names:
            warnings.append(ParseWarning(message="No worksheets found in Excel file."))
            return ParseResult([], warnings, build_metadata([], account_type))

        sheet_name = workbook.sheet_names[0]
        # Read raw: no header, every cell as-is
        df_raw = workbook.parse(sheet_name, header=None, dtype=object)

    grid = to_grid(df_raw)
    if not any(any(cell for cell in row) for row in grid):
        warnings.append(ParseWarning(message=f'Worksheet "{sheet_name}" is empty.'))
        return ParseResult([], warnings, build_metadata([], account_type))

    header_row_idx = find_header_row(grid)
    if header_row_idx is None:
        logger.info("excel_header_not_found", file_name=file_name, sheet=sheet_name)
        warnings.append(ParseWarning(message=HEADER_HINT, context={"sheet": sheet_name}))
        return ParseResult([], warnings, build_metadata([], account_type))

    records, row_warnings = records_after_header(grid, header_row_idx)
    warnings.extend(row_warnings)

    transactions = []
    for record in records:
        outcome = normalize_record(record, file_name, account_type)
        warnings.extend(outcome.warnings)
        if outcome.transaction:
            transactions.append(outcome.transaction)

    logger.info(
        "excel_parsed",
        file_name=file_name,
        sheet=sheet_name,
        header_row=header_row_idx + 1,
        transactions=len(transactions),
    )
    return ParseResult(transactions, warnings, build_metadata(transactions, account_type))
