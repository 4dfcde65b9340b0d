from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from banking_gateway.models import Transaction
from banking_gateway.services import BankingToolService, NotFoundError


@pytest.fixture
def tools():
    return BankingToolService()


def test_account_balance(db_session, tools):
    assert tools.account_balance(db_session, "ACC001") == "Account ACC001 balance: 5000.00 USD. Status: ACTIVE"


def test_account_status(db_session, tools):
    assert tools.account_status(db_session, "ACC004") == (
        "Account ACC004: Status=ACTIVE, Type=CHECKING, Balance=15000.00 USD, Opened=N/A"
    )


def test_recent_transactions_newest_first(db_session, tools):
    result = tools.recent_transactions(db_session, "ACC001", limit=2)

    lines = result.splitlines()
    assert lines[0] == "Recent transactions:"
    assert len(lines) == 3
    assert lines[1].startswith("- DEBIT: 150.00 USD on ")
    assert lines[1].endswith("(Coffee purchase)")
    assert lines[2].endswith("(Electronics purchase)")


def test_recent_transactions_are_capped(db_session, tools):
    now = datetime.utcnow()
    for i in range(12):
        db_session.add(Transaction(
            account_number="ACC002",
            transaction_type="CREDIT",
            amount=Decimal("10.00"),
            currency="USD",
            transaction_date=now - timedelta(minutes=i),
            status="COMPLETED",
        ))
    db_session.commit()

    result = tools.recent_transactions(db_session, "ACC002", limit=50)

    assert len(result.splitlines()) == 11
    assert "(N/A)" in result


def test_recent_transactions_none_found(db_session, tools):
    assert tools.recent_transactions(db_session, "ACC002") == "No recent transactions found for account: ACC002"


def test_spending_by_category(db_session, tools):
    # The salary credit is not spending
    assert tools.spending_by_category(db_session, "ACC001") == (
        "Spending by category (last 30 days):\n"
        "- ELECTRONICS: 2500.00\n"
        "- FOOD_AND_BEVERAGE: 150.00"
    )


def test_spending_by_category_respects_window(db_session, tools):
    result = tools.spending_by_category(db_session, "ACC001", days=2)

    assert "ELECTRONICS" not in result
    assert "- FOOD_AND_BEVERAGE: 150.00" in result


def test_spending_by_category_none_found(db_session, tools):
    assert tools.spending_by_category(db_session, "ACC002", days=7) == (
        "No transactions found for account ACC002 in the last 7 days"
    )


def test_account_summary(db_session, tools):
    assert tools.account_summary(db_session, "ACC001") == (
        "Account Summary for ACC001:\n"
        "- Balance: 5000.00 USD\n"
        "- Status: ACTIVE\n"
        "- Type: CHECKING\n"
        "- Total Transactions: 3\n"
        "- Total Spending: 2650.00 USD"
    )


@pytest.mark.parametrize("lookup", ["account_balance", "account_status", "account_summary"])
def test_unknown_account(db_session, tools, lookup):
    with pytest.raises(NotFoundError, match="ACC999"):
        getattr(tools, lookup)(db_session, "ACC999")
