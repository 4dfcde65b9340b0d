"""Database models for the banking AI gateway."""

from .base import Base
from .banking import (
    Customer,
    Account,
    Transaction,
    FraudAlert,
    RiskAssessmentRecord,
    ComplianceReport,
    ChatMessage,
)

__all__ = [
    "Base",
    "Customer",
    "Account",
    "Transaction",
    "FraudAlert",
    "RiskAssessmentRecord",
    "ComplianceReport",
    "ChatMessage",
]
