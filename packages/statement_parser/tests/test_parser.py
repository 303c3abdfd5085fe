"""Tests for the statement orchestrator."""

import asyncio
import sys
from unittest.mock import patch

import pytest

from packages.statement_parser.core.errors import UnreadableStatementError
from packages.statement_parser.csv_parser import parse_csv
from packages.statement_parser.excel_parser import parse_excel
from packages.statement_parser.models import (
    AccountType,
    StatementFile,
    StatementFormat,
    TransactionType,
)
from packages.statement_parser.parser import (
    parse_statement_file,
    parse_statement_files,
    resolve_parser,
)


def _csv(name, body):
    return StatementFile(name=name, content_type="text/csv", content=body.encode("utf-8"))


class TestParseStatementFile:
    def test_normalises_basic_csv_transactions(self):
        parsed = asyncio.run(
            parse_statement_file(
                _csv("statement.csv", "Date,Description,Amount\n2024-01-01,Coffee Shop,-5.50")
            )
        )

        assert parsed.format == StatementFormat.CSV
        assert parsed.file_name == "statement.csv"
        assert len(parsed.transactions) == 1
        txn = parsed.transactions[0]
        assert (txn.description, txn.amount, txn.type) == ("Coffee Shop", 5.5, TransactionType.DEBIT)
        assert txn.account_type == AccountType.BANK
        assert parsed.warnings == []

    def test_account_type_inferred_from_file_name(self):
        parsed = asyncio.run(
            parse_statement_file(
                _csv("credit_card_march.csv", "Date,Description,Amount\n2024-03-01,Fuel,-40")
            )
        )

        assert parsed.metadata.account_type == AccountType.CREDIT_CARD
        assert parsed.transactions[0].account_type == AccountType.CREDIT_CARD

    def test_caller_account_type_overrides_inference(self):
        parsed = asyncio.run(
            parse_statement_file(
                _csv("credit_card_march.csv", "Date,Description,Amount\n2024-03-01,Fuel,-40"),
                account_type=AccountType.BANK,
            )
        )

        assert parsed.metadata.account_type == AccountType.BANK

    def test_unknown_format_returns_warning(self):
        file = StatementFile(name="notes.docx", content_type="application/msword", content=b"x")

        parsed = asyncio.run(parse_statement_file(file))

        assert parsed.format == StatementFormat.UNKNOWN
        assert parsed.transactions == []
        assert [w.message for w in parsed.warnings] == ["Unsupported file format."]
        assert parsed.metadata.account_type == AccountType.BANK
        assert parsed.metadata.bank_name is None

    def test_hard_failures_propagate(self):
        file = StatementFile(name="broken.xlsx", content=b"not a workbook")

        with pytest.raises(UnreadableStatementError):
            asyncio.run(parse_statement_file(file))

    def test_to_dict_uses_wire_values(self):
        parsed = asyncio.run(
            parse_statement_file(
                _csv("statement.csv", "Date,Description,Amount\n2024-01-01,Coffee,-5.50")
            )
        )

        payload = parsed.to_dict()
        assert payload["format"] == "csv"
        assert payload["metadata"]["account_type"] == "bank"
        assert payload["transactions"][0]["type"] == "debit"
        assert payload["transactions"][0]["classification_source"] == "none"


class TestParseStatementFiles:
    def test_results_keep_input_order(self):
        files = [
            _csv("a.csv", "Date,Description,Amount\n2024-01-01,First,-1"),
            StatementFile(name="b.docx", content=b""),
            _csv("c.csv", "Date,Description,Amount\n2024-01-03,Third,-3"),
        ]

        results = asyncio.run(parse_statement_files(files))

        assert [r.file_name for r in results] == ["a.csv", "b.docx", "c.csv"]
        assert [r.format for r in results] == [
            StatementFormat.CSV,
            StatementFormat.UNKNOWN,
            StatementFormat.CSV,
        ]
        assert results[2].transactions[0].description == "Third"

    def test_duplicates_across_files_are_kept(self):
        body = "Date,Description,Amount\n2024-01-01,Coffee,-5.50"

        results = asyncio.run(parse_statement_files([_csv("a.csv", body), _csv("b.csv", body)]))

        assert sum(len(r.transactions) for r in results) == 2

    def test_one_failure_rejects_the_batch(self):
        files = [
            _csv("a.csv", "Date,Description,Amount\n2024-01-01,First,-1"),
            StatementFile(name="broken.xlsx", content=b"not a workbook"),
        ]

        with pytest.raises(UnreadableStatementError):
            asyncio.run(parse_statement_files(files))


class TestResolveParser:
    def test_tabular_formats(self):
        assert resolve_parser(StatementFormat.CSV) is parse_csv
        assert resolve_parser(StatementFormat.EXCEL) is parse_excel

    def test_pdf_reconstructor_is_loaded_on_demand(self):
        reconstructor = resolve_parser(StatementFormat.PDF)
        file = StatementFile(name="card.pdf", content_type="application/pdf", content=b"%PDF")

        with patch("pdfplumber.open", side_effect=Exception("bad pdf")):
            with pytest.raises(UnreadableStatementError):
                asyncio.run(parse_statement_file(file))

        assert "packages.statement_parser.pdf_parser" in sys.modules
        assert callable(reconstructor)
