"""Classify a statement file from its declared MIME type and extension."""

from .models import StatementFile, StatementFormat

EXCEL_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}

PDF_MIME_TYPES = {"application/pdf"}

CSV_MIME_TYPES = {
    "text/csv",
    "application/csv",
    "text/plain",
}


def detect_statement_format(file: StatementFile) -> StatementFormat:
    """Return the statement format implied by the file's label.

    The content is never sniffed: a mislabeled file is classified by its
    MIME type or suffix and left for the matching reconstructor to reject.
    """
    name = file.name.lower()
    mime = (file.content_type or "").lower()

    if mime in PDF_MIME_TYPES or name.endswith(".pdf"):
        return StatementFormat.PDF

    if mime in EXCEL_MIME_TYPES or name.endswith((".xlsx", ".xls")):
        return StatementFormat.EXCEL

    if mime in CSV_MIME_TYPES or name.endswith(".csv"):
        return StatementFormat.CSV

    return StatementFormat.UNKNOWN
