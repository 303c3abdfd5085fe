"""
Statement data model.

Types produced by the reconstructors and the field normalizer, plus the
file abstraction the orchestrator consumes. Everything a parse returns is
frozen: downstream collaborators (categorization, insights, export) build
modified copies with ``dataclasses.replace`` instead of mutating.
"""

import io
import mimetypes
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .core.errors import UnreadableStatementError


class AccountType(str, Enum):
    BANK = "bank"
    CREDIT_CARD = "credit-card"


class TransactionType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class StatementFormat(str, Enum):
    CSV = "csv"
    EXCEL = "excel"
    PDF = "pdf"
    UNKNOWN = "unknown"


class ClassificationSource(str, Enum):
    RULE = "rule"
    LLM = "llm"
    MANUAL = "manual"
    NONE = "none"


@dataclass(frozen=True)
class Transaction:
    """Standardized transaction structure."""

    id: str
    date: str  # yyyy-MM-dd, or the raw string when the date could not be parsed
    raw_date: str
    description: str
    amount: float  # magnitude, direction lives in `type`
    type: TransactionType
    account_type: AccountType
    source_file_name: str
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    # Owned by downstream categorization; the parser only sets defaults.
    category: Optional[str] = None
    subcategory: Optional[str] = None
    classification_confidence: float = 0.0
    classification_source: ClassificationSource = ClassificationSource.NONE
    is_recurring: bool = False
    is_new_spend: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary with enum values unwrapped."""
        return {
            key: value.value if isinstance(value, Enum) else value
            for key, value in asdict(self).items()
        }


@dataclass(frozen=True)
class ParseWarning:
    """Non-fatal diagnostic attached to a parse result."""

    message: str
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message}
        if self.context is not None:
            payload["context"] = self.context
        return payload


@dataclass(frozen=True)
class StatementMetadata:
    account_type: AccountType
    bank_name: Optional[str] = None
    account_number: Optional[str] = None


@dataclass(frozen=True)
class ParseResult:
    """Transactions, warnings and metadata recovered from one file."""

    transactions: List[Transaction]
    warnings: List[ParseWarning]
    metadata: StatementMetadata


@dataclass(frozen=True)
class ParsedStatement(ParseResult):
    """A ``ParseResult`` tagged with the detected format and file name."""

    format: StatementFormat = StatementFormat.UNKNOWN
    file_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_name": self.file_name,
            "format": self.format.value,
            "metadata": {
                "account_type": self.metadata.account_type.value,
                "bank_name": self.metadata.bank_name,
                "account_number": self.metadata.account_number,
            },
            "transactions": [t.to_dict() for t in self.transactions],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass(frozen=True)
class StatementSummary:
    """Per-file overview shown after an upload."""

    file_name: str
    format: StatementFormat
    transaction_count: int
    warnings: List[ParseWarning]
    account_type: AccountType
    bank_name: Optional[str]
    account_number: Optional[str]


@dataclass(frozen=True)
class StatementFile:
    """An uploaded statement: a name, a declared content type and raw bytes."""

    name: str
    content_type: str = ""
    content: bytes = b""

    @classmethod
    def from_path(cls, path) -> "StatementFile":
        """Load a file from disk, guessing its content type from the name."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "",
            content=path.read_bytes(),
        )

    def buffer(self) -> io.BytesIO:
        """Return a fresh binary stream over the content."""
        return io.BytesIO(self.content)

    def text(self, encodings: Sequence[str] = ("utf-8",)) -> str:
        """Decode the content, trying each encoding in turn."""
        for encoding in encodings:
            try:
                return self.content.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                continue

        raise UnreadableStatementError(
            f"Could not decode {self.name} with any of: {', '.join(encodings)}"
        )


@dataclass(frozen=True)
class ParseContext:
    file: StatementFile
    account_type: Optional[AccountType] = None
    password: Optional[str] = None


def build_metadata(
    transactions: Sequence[Transaction], account_type: Optional[AccountType]
) -> StatementMetadata:
    """Derive file metadata from the first transactions that carry it."""
    bank_name = next((t.bank_name for t in transactions if t.bank_name), None)
    account_number = next(
        (t.account_number for t in transactions if t.account_number), None
    )
    return StatementMetadata(
        account_type=account_type or AccountType.BANK,
        bank_name=bank_name,
        account_number=account_number,
    )


def summarize(parsed: ParsedStatement) -> StatementSummary:
    return StatementSummary(
        file_name=parsed.file_name,
        format=parsed.format,
        transaction_count=len(parsed.transactions),
        warnings=list(parsed.warnings),
        account_type=parsed.metadata.account_type,
        bank_name=parsed.metadata.bank_name,
        account_number=parsed.metadata.account_number,
    )
