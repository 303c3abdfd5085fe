"""Tests for the parser exception hierarchy."""

import pytest

from packages.statement_parser.core.errors import (
    StatementParseError,
    UnreadableStatementError,
    WorkbookDecryptionError,
)


class TestStatementErrors:
    def test_unreadable_statement_error_defaults(self):
        exc = UnreadableStatementError()
        assert exc.error_type == "unreadable_statement"
        assert exc.detail == "Statement file could not be read"
        assert str(exc) == exc.detail

    def test_decryption_error_is_statement_error(self):
        with pytest.raises(StatementParseError, match="Invalid password"):
            raise WorkbookDecryptionError()

    def test_custom_detail(self):
        exc = UnreadableStatementError("PDF is corrupt")
        assert exc.detail == "PDF is corrupt"
        assert isinstance(exc, StatementParseError)
