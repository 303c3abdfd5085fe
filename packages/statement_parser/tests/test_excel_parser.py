import asyncio
import io
from datetime import datetime
from unittest.mock import MagicMock, patch

import openpyxl
import pytest

from packages.statement_parser.core.errors import (
    UnreadableStatementError,
    WorkbookDecryptionError,
)
from packages.statement_parser.excel_parser import _OLE2_MAGIC, parse_excel
from packages.statement_parser.models import ParseContext, StatementFile, TransactionType

# OLE2 magic prefix to simulate encrypted file content
_FAKE_ENCRYPTED = _OLE2_MAGIC + b"fake_encrypted_payload"

HEADER = [
    "Date",
    "Narration",
    "Chq./Ref.No.",
    "Value Dt",
    "Withdrawal Amt.",
    "Deposit Amt.",
    "Closing Balance",
]


def _xlsx_bytes(rows, title="Statement"):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = title
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def statement_xlsx():
    # Letterhead rows above the real header, mirroring an HDFC export
    return _xlsx_bytes(
        [
            ["HDFC BANK Ltd."],
            ["Account No : 50100012345678"],
            HEADER,
            ["01/04/24", "UPI-COFFEE", "REF123", "01/04/24", 150.0, None, 9850.0],
            ["Page 1 of 1"],
            HEADER,
            [datetime(2024, 4, 2), "SALARY", "REF124", "02/04/24", None, 50000.0, 59850.0],
        ]
    )


@pytest.fixture(autouse=True)
def no_env_password(monkeypatch):
    monkeypatch.delenv("STATEMENT_PASSWORD", raising=False)


def _parse(content, name="hdfc_statement.xlsx", password=None):
    file = StatementFile(name=name, content=content)
    return asyncio.run(parse_excel(ParseContext(file=file, password=password)))


def test_parse_excel_with_letterhead(statement_xlsx):
    result = _parse(statement_xlsx)

    assert result.warnings == []
    assert len(result.transactions) == 2

    coffee, salary = result.transactions
    assert coffee.date == "2024-04-01"
    assert coffee.description == "UPI-COFFEE"
    assert coffee.amount == 150.0
    assert coffee.type == TransactionType.DEBIT

    # Native Excel dates survive as timestamps
    assert salary.date == "2024-04-02"
    assert salary.amount == 50000.0
    assert salary.type == TransactionType.CREDIT


def test_parse_excel_without_header_row():
    content = _xlsx_bytes([["Summary"], ["Total", 100]])

    result = _parse(content)

    assert result.transactions == []
    assert len(result.warnings) == 1
    assert "Unable to locate the transaction header row" in result.warnings[0].message


def test_parse_excel_empty_sheet():
    result = _parse(_xlsx_bytes([]))

    assert result.transactions == []
    assert [w.message for w in result.warnings] == ['Worksheet "Statement" is empty.']


def test_parse_excel_only_reads_first_sheet():
    workbook = openpyxl.Workbook()
    workbook.active.append(["Date", "Description", "Amount"])
    workbook.active.append(["2024-01-01", "Coffee", -5])
    second = workbook.create_sheet("Other")
    second.append(["Date", "Description", "Amount"])
    second.append(["2024-01-02", "Tea", -3])
    buffer = io.BytesIO()
    workbook.save(buffer)

    result = _parse(buffer.getvalue())

    assert [t.description for t in result.transactions] == ["Coffee"]


def test_parse_excel_unreadable_file():
    with pytest.raises(UnreadableStatementError):
        _parse(b"definitely not a workbook")


@patch("packages.statement_parser.excel_parser.pd.ExcelFile")
def test_parse_excel_no_worksheets(mock_excel_file):
    mock_excel_file.return_value = MagicMock(sheet_names=[])

    result = _parse(b"PK\x03\x04")

    assert result.transactions == []
    assert [w.message for w in result.warnings] == ["No worksheets found in Excel file."]


@patch("packages.statement_parser.excel_parser.pd.ExcelFile")
@patch("packages.statement_parser.excel_parser.msoffcrypto")
def test_legacy_xls_is_read_without_decryption(mock_msoffcrypto, mock_excel_file):
    mock_msoffcrypto.OfficeFile.return_value.is_encrypted.return_value = False
    mock_excel_file.return_value = MagicMock(sheet_names=[])
    content = _OLE2_MAGIC + b"legacy-xls-body"

    result = _parse(content, name="sbi_statement.xls", password="secret")

    mock_msoffcrypto.OfficeFile.return_value.load_key.assert_not_called()
    mock_msoffcrypto.OfficeFile.return_value.decrypt.assert_not_called()
    assert mock_excel_file.call_args[0][0].getvalue() == content
    assert [w.message for w in result.warnings] == ["No worksheets found in Excel file."]


@patch("packages.statement_parser.excel_parser.msoffcrypto")
def test_encrypted_excel_without_password(mock_msoffcrypto):
    mock_msoffcrypto.OfficeFile.return_value.is_encrypted.return_value = True

    result = _parse(_FAKE_ENCRYPTED)

    assert result.transactions == []
    assert len(result.warnings) == 1
    assert result.warnings[0].context == {"code": "PasswordRequired"}
    mock_msoffcrypto.OfficeFile.return_value.load_key.assert_not_called()


@patch("packages.statement_parser.excel_parser.msoffcrypto")
def test_parse_encrypted_excel(mock_msoffcrypto, statement_xlsx):
    mock_office_file = MagicMock()
    mock_office_file.is_encrypted.return_value = True
    mock_office_file.decrypt.side_effect = lambda out: out.write(statement_xlsx)
    mock_msoffcrypto.OfficeFile.return_value = mock_office_file

    result = _parse(_FAKE_ENCRYPTED, password="secret")

    mock_office_file.load_key.assert_called_once_with(password="secret")
    assert len(result.transactions) == 2


@patch("packages.statement_parser.excel_parser.msoffcrypto")
def test_password_falls_back_to_settings(mock_msoffcrypto, statement_xlsx, monkeypatch):
    monkeypatch.setenv("STATEMENT_PASSWORD", "from-env")
    mock_office_file = MagicMock()
    mock_office_file.is_encrypted.return_value = True
    mock_office_file.decrypt.side_effect = lambda out: out.write(statement_xlsx)
    mock_msoffcrypto.OfficeFile.return_value = mock_office_file

    result = _parse(_FAKE_ENCRYPTED)

    mock_office_file.load_key.assert_called_once_with(password="from-env")
    assert len(result.transactions) == 2


@patch("packages.statement_parser.excel_parser.msoffcrypto")
def test_parse_encrypted_excel_wrong_password(mock_msoffcrypto):
    mock_office_file = MagicMock()
    mock_office_file.is_encrypted.return_value = True
    mock_office_file.load_key.side_effect = Exception("Key verification failed")
    mock_msoffcrypto.OfficeFile.return_value = mock_office_file

    with pytest.raises(WorkbookDecryptionError, match="Invalid password"):
        _parse(_FAKE_ENCRYPTED, password="wrong")
