"""Hard failures of the statement parser.

Anticipated problems with a statement (missing header, unparseable rows,
odd dates) are reported as ``ParseWarning`` values, never raised. The
exceptions below are reserved for files the parser could not process at all:

    try:
        parsed = await parse_statement_file(file)
    except StatementParseError as exc:
        show_error(exc.detail)
"""


class StatementParseError(Exception):
    """Base parser error."""

    def __init__(self, detail: str, error_type: str = "statement_parse_error"):
        self.detail = detail
        self.error_type = error_type
        super().__init__(detail)


class UnreadableStatementError(StatementParseError):
    """The binary container (workbook, PDF, text encoding) could not be decoded."""

    def __init__(self, detail: str = "Statement file could not be read"):
        super().__init__(detail=detail, error_type="unreadable_statement")


class WorkbookDecryptionError(StatementParseError):
    """A password was supplied but the workbook could not be decrypted."""

    def __init__(self, detail: str = "Invalid password"):
        super().__init__(detail=detail, error_type="workbook_decryption_failed")
