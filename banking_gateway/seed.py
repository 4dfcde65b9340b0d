"""Sample customers, accounts and transactions for local development."""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from banking_gateway.models import Customer, Account, Transaction

logger = logging.getLogger(__name__)


def seed_sample_data(db: Session) -> bool:
    """Insert the sample data set unless customers already exist. Returns True if seeded."""
    if db.scalar(select(func.count()).select_from(Customer)):
        logger.info("Data already exists, skipping seed.")
        return False

    logger.info("Seeding initial data...")
    now = datetime.utcnow()

    db.add_all([
        Customer(
            customer_id="CUST001", first_name="John", last_name="Doe",
            email="john.doe@example.com", date_of_birth=date(1985, 5, 15),
            address="123 Main Street", city="New York", country="USA",
            kyc_status="VERIFIED", risk_profile="LOW",
        ),
        Customer(
            customer_id="CUST002", first_name="Jane", last_name="Smith",
            email="jane.smith@example.com", date_of_birth=date(1990, 8, 22),
            address="456 Oak Avenue", city="Los Angeles", country="USA",
            kyc_status="VERIFIED", risk_profile="MEDIUM",
        ),
        Customer(
            customer_id="CUST003", first_name="Robert", last_name="Johnson",
            email="robert.j@example.com", date_of_birth=date(1978, 3, 10),
            address="789 Pine Road", city="Chicago", country="USA",
            kyc_status="VERIFIED", risk_profile="HIGH",
        ),
    ])

    db.add_all([
        Account(account_number="ACC001", customer_id="CUST001", account_type="CHECKING",
                balance=Decimal("5000.00"), currency="USD", status="ACTIVE"),
        Account(account_number="ACC002", customer_id="CUST001", account_type="SAVINGS",
                balance=Decimal("25000.00"), currency="USD", status="ACTIVE"),
        Account(account_number="ACC003", customer_id="CUST002", account_type="CHECKING",
                balance=Decimal("3500.00"), currency="USD", status="ACTIVE"),
        Account(account_number="ACC004", customer_id="CUST003", account_type="CHECKING",
                balance=Decimal("15000.00"), currency="USD", status="ACTIVE",
                credit_limit=Decimal("10000.00")),
    ])

    db.add_all([
        Transaction(account_number="ACC001", transaction_type="DEBIT", amount=Decimal("150.00"),
                    currency="USD", merchant_name="Starbucks", merchant_category="FOOD_AND_BEVERAGE",
                    location="New York, NY", transaction_date=now - timedelta(days=1),
                    status="COMPLETED", description="Coffee purchase"),
        Transaction(account_number="ACC001", transaction_type="DEBIT", amount=Decimal("2500.00"),
                    currency="USD", merchant_name="Best Buy", merchant_category="ELECTRONICS",
                    location="New York, NY", transaction_date=now - timedelta(days=2),
                    status="COMPLETED", description="Electronics purchase"),
        Transaction(account_number="ACC001", transaction_type="CREDIT", amount=Decimal("5000.00"),
                    currency="USD", merchant_name="Salary Deposit", merchant_category="SALARY",
                    location="New York, NY", transaction_date=now - timedelta(days=5),
                    status="COMPLETED", description="Monthly salary"),
        Transaction(account_number="ACC003", transaction_type="DEBIT", amount=Decimal("50000.00"),
                    currency="USD", merchant_name="Unknown Merchant", merchant_category="OTHER",
                    location="Unknown Location", transaction_date=now - timedelta(hours=2),
                    status="PENDING", description="Large transaction"),
        Transaction(account_number="ACC004", transaction_type="DEBIT", amount=Decimal("12000.00"),
                    currency="USD", merchant_name="International Transfer", merchant_category="TRANSFER",
                    location="Offshore", transaction_date=now - timedelta(hours=1),
                    status="PENDING", description="International wire transfer",
                    counterparty_account="OFFSHORE001"),
    ])

    db.commit()
    logger.info("Data seeding completed!")
    return True
