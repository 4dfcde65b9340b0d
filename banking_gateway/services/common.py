from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from banking_gateway.models import Account, Customer, Transaction


class NotFoundError(Exception):
    """Raised when a referenced customer, account or document does not exist."""


def get_account(db: Session, account_number: str) -> Account:
    account = db.scalar(select(Account).where(Account.account_number == account_number))
    if account is None:
        raise NotFoundError(f"Account not found: {account_number}")
    return account


def find_account(db: Session, account_number: Optional[str]) -> Optional[Account]:
    if not account_number:
        return None
    return db.scalar(select(Account).where(Account.account_number == account_number))


def get_customer(db: Session, customer_id: str) -> Customer:
    customer = db.scalar(select(Customer).where(Customer.customer_id == customer_id))
    if customer is None:
        raise NotFoundError(f"Customer not found: {customer_id}")
    return customer


def find_customer(db: Session, customer_id: Optional[str]) -> Optional[Customer]:
    if not customer_id:
        return None
    return db.scalar(select(Customer).where(Customer.customer_id == customer_id))


def transactions_between(
    db: Session, account_number: str, start: datetime, end: Optional[datetime] = None
) -> List[Transaction]:
    """Transactions for an account in [start, end], newest first."""
    query = select(Transaction).where(
        Transaction.account_number == account_number,
        Transaction.transaction_date >= start,
    )
    if end is not None:
        query = query.where(Transaction.transaction_date <= end)
    return list(db.scalars(query.order_by(Transaction.transaction_date.desc())))


def recent_transactions(db: Session, account_number: str, days: int) -> List[Transaction]:
    return transactions_between(db, account_number, datetime.utcnow() - timedelta(days=days))


def account_transactions(db: Session, account_number: str) -> List[Transaction]:
    """Every transaction on an account, newest first."""
    query = select(Transaction).where(Transaction.account_number == account_number)
    return list(db.scalars(query.order_by(Transaction.transaction_date.desc())))


def format_transactions(transactions: List[Transaction], limit: Optional[int] = None) -> str:
    if not transactions:
        return "No recent transactions"

    lines = [
        f"- {t.transaction_type}: {t.amount} {t.currency} at {t.merchant_name} "
        f"({t.merchant_category}) on {t.transaction_date:%Y-%m-%d %H:%M}"
        for t in transactions[:limit]
    ]
    return "\n".join(lines)


def mask_account_number(account_number: str) -> str:
    return "****" + account_number[-4:]
