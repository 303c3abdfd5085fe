from packages.statement_parser.account_type import infer_account_type
from packages.statement_parser.models import AccountType


def test_infers_account_type_from_file_name():
    assert infer_account_type("credit_card_statement.pdf") == AccountType.CREDIT_CARD
    assert infer_account_type("bank_statement_jan.csv") == AccountType.BANK


def test_credit_keywords_are_checked_before_bank_keywords():
    # "statement" is a bank keyword but "credit" must win
    assert infer_account_type("Credit Card Statement.pdf") == AccountType.CREDIT_CARD
    assert infer_account_type("HDFC_VISA_savings.pdf") == AccountType.CREDIT_CARD


def test_defaults_to_bank():
    assert infer_account_type("january.csv") == AccountType.BANK
    assert infer_account_type("") == AccountType.BANK
