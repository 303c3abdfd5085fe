"""
Statement Parser

Bank and credit-card statement ingestion: format detection, table
reconstruction from CSV, Excel and PDF files, and field normalization.
"""

__version__ = "0.1.0"

from .account_type import infer_account_type
from .core.errors import (
    StatementParseError,
    UnreadableStatementError,
    WorkbookDecryptionError,
)
from .detect_file_type import detect_statement_format
from .models import (
    AccountType,
    ParsedStatement,
    ParseResult,
    ParseWarning,
    StatementFile,
    StatementFormat,
    StatementMetadata,
    StatementSummary,
    Transaction,
    TransactionType,
    summarize,
)
from .normalize import normalize_record
from .parser import parse_statement_file, parse_statement_files

__all__ = [
    "AccountType",
    "ParsedStatement",
    "ParseResult",
    "ParseWarning",
    "StatementFile",
    "StatementFormat",
    "StatementMetadata",
    "StatementParseError",
    "StatementSummary",
    "Transaction",
    "TransactionType",
    "UnreadableStatementError",
    "WorkbookDecryptionError",
    "detect_statement_format",
    "infer_account_type",
    "normalize_record",
    "parse_statement_file",
    "parse_statement_files",
    "summarize",
]
