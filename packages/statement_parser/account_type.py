"""Guess the account type of a statement from its file name."""

from .models import AccountType

# Credit keywords are checked first: "credit card statement.pdf" must not
# match on "statement".
CREDIT_KEYWORDS = ("credit", "card", "cc", "visa", "mastercard")
BANK_KEYWORDS = ("bank", "savings", "checking", "account", "statement")


def infer_account_type(file_name: str) -> AccountType:
    normalized = file_name.lower()

    if any(keyword in normalized for keyword in CREDIT_KEYWORDS):
        return AccountType.CREDIT_CARD

    if any(keyword in normalized for keyword in BANK_KEYWORDS):
        return AccountType.BANK

    return AccountType.BANK
