"""
Account lookups an assistant (or a caller) can invoke directly.

Each lookup reads the database and returns a short plain-text answer;
no language model is involved.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict

from sqlalchemy.orm import Session

from .common import account_transactions, get_account, transactions_between

logger = logging.getLogger(__name__)

# Upper bound on transactions listed by a single lookup
MAX_LISTED_TRANSACTIONS = 10


class BankingToolService:

    def account_balance(self, db: Session, account_number: str) -> str:
        logger.info(f"Tool call: account_balance for account: {account_number}")
        account = get_account(db, account_number)
        return f"Account {account_number} balance: {account.balance} {account.currency}. Status: {account.status}"

    def recent_transactions(self, db: Session, account_number: str, limit: int = 5) -> str:
        logger.info(f"Tool call: recent_transactions for account: {account_number}, limit: {limit}")
        transactions = account_transactions(db, account_number)[:min(limit, MAX_LISTED_TRANSACTIONS)]

        if not transactions:
            return f"No recent transactions found for account: {account_number}"

        lines = [
            f"- {t.transaction_type}: {t.amount} {t.currency} on {t.transaction_date:%Y-%m-%d %H:%M} "
            f"({t.description or 'N/A'})"
            for t in transactions
        ]
        return "Recent transactions:\n" + "\n".join(lines)

    def account_status(self, db: Session, account_number: str) -> str:
        logger.info(f"Tool call: account_status for account: {account_number}")
        account = get_account(db, account_number)
        return (
            f"Account {account_number}: Status={account.status}, Type={account.account_type}, "
            f"Balance={account.balance} {account.currency}, Opened={account.opened_date or 'N/A'}"
        )

    def spending_by_category(self, db: Session, account_number: str, days: int = 30) -> str:
        logger.info(f"Tool call: spending_by_category for account: {account_number}, days: {days}")
        transactions = transactions_between(db, account_number, datetime.utcnow() - timedelta(days=days))

        if not transactions:
            return f"No transactions found for account {account_number} in the last {days} days"

        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for t in transactions:
            if t.transaction_type == "DEBIT":
                totals[t.merchant_category or "UNCATEGORIZED"] += t.amount

        lines = [f"- {category}: {total}" for category, total in sorted(totals.items())]
        return f"Spending by category (last {days} days):\n" + "\n".join(lines)

    def account_summary(self, db: Session, account_number: str) -> str:
        logger.info(f"Tool call: account_summary for account: {account_number}")
        account = get_account(db, account_number)
        transactions = account_transactions(db, account_number)
        total_debits = sum((t.amount for t in transactions if t.transaction_type == "DEBIT"), Decimal("0"))

        return (
            f"Account Summary for {account_number}:\n"
            f"- Balance: {account.balance} {account.currency}\n"
            f"- Status: {account.status}\n"
            f"- Type: {account.account_type}\n"
            f"- Total Transactions: {len(transactions)}\n"
            f"- Total Spending: {total_debits} {account.currency}"
        )
