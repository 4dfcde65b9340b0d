"""
Account analysis handlers: fraud detection, transaction analysis, risk
assessment and compliance checks.

Each handler gathers account data from the database, asks the model for a
line-oriented verdict, parses it with safe defaults and persists the result.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from banking_gateway.llm import InstrumentedLLMClient
from banking_gateway.llm.parsing import parse_fields, split_list, extract_section_items, to_float
from banking_gateway.models import (
    Account,
    Customer,
    Transaction,
    FraudAlert,
    RiskAssessmentRecord,
    ComplianceReport,
)
from banking_gateway.schemas.banking import (
    Severity,
    ComplianceType,
    FraudDetectionRequest,
    FraudDetectionResponse,
    TransactionAnalysisRequest,
    TransactionAnalysisResponse,
    RiskAssessmentRequest,
    RiskAssessmentResponse,
    ComplianceCheckRequest,
    ComplianceCheckResponse,
)
from .common import get_account, get_customer, transactions_between, recent_transactions, format_transactions
from .knowledge import KnowledgeBase

logger = logging.getLogger(__name__)

FRAUD_ALERT_THRESHOLD = 0.5
FRAUDULENT_THRESHOLD = 0.7
HIGH_VALUE_AMOUNT = Decimal("10000")

COMPLIANCE_STATUSES = ("COMPLIANT", "NON_COMPLIANT", "REQUIRES_REVIEW")


def _severity(value: str, default: str = Severity.MEDIUM.value) -> str:
    value = (value or "").strip().upper()
    return value if value in Severity.__members__ else default


class FraudDetectionService:
    SERVICE_NAME = "fraud-detection"

    def __init__(self, llm: InstrumentedLLMClient, knowledge: KnowledgeBase, context_top_k: int = 3):
        self.llm = llm
        self.knowledge = knowledge
        # Knowledge documents included in each prompt
        self.context_top_k = context_top_k

    def detect_fraud(self, db: Session, request: FraudDetectionRequest) -> FraudDetectionResponse:
        logger.info(f"Analyzing transaction for fraud: account={request.account_number}, amount={request.amount}")

        account = get_account(db, request.account_number)
        history = recent_transactions(db, request.account_number, days=30)

        context = self.knowledge.context_for(
            f"fraud detection transaction analysis {request.transaction_type} "
            f"{request.amount} {request.merchant_category}",
            top_k=self.context_top_k,
        )

        prompt = f"""You are an expert fraud detection analyst for a banking institution.
Analyze the following transaction and determine if it's potentially fraudulent.

{context}

Transaction Details:
Type: {request.transaction_type}
Amount: {request.amount} {request.currency}
Merchant: {request.merchant_name} ({request.merchant_category})
Location: {request.location}
Date: {request.transaction_date.isoformat()}
Description: {request.description or "N/A"}
Counterparty: {request.counterparty_account or "N/A"}

Account Information:
- Account Number: {account.account_number}
- Account Type: {account.account_type}
- Current Balance: {account.balance}
- Account Status: {account.status}

Recent Transaction History (Last 30 days):
{format_transactions(history)}

Format your response as:
RISK_SCORE: [0.0 to 1.0, where 1.0 is highest risk]
SEVERITY: [LOW, MEDIUM, HIGH, CRITICAL]
ANALYSIS: [detailed analysis]
RISK_FACTORS: [comma-separated list]
RECOMMENDATION: [APPROVE, REVIEW, BLOCK]
"""
        response = self.llm.complete(self.SERVICE_NAME, "detect_fraud", prompt)
        result = self.parse_analysis(response)

        transaction = Transaction(
            account_number=request.account_number,
            transaction_type=request.transaction_type,
            amount=request.amount,
            currency=request.currency,
            merchant_name=request.merchant_name,
            merchant_category=request.merchant_category,
            location=request.location,
            transaction_date=request.transaction_date,
            status="FRAUD_SUSPECTED" if result["recommendation"] == "BLOCK" else "PENDING",
            description=request.description,
            counterparty_account=request.counterparty_account,
        )
        db.add(transaction)
        db.flush()

        if result["risk_score"] >= FRAUD_ALERT_THRESHOLD:
            db.add(FraudAlert(
                transaction_id=transaction.id,
                account_number=request.account_number,
                severity=result["severity"],
                ai_analysis=result["analysis"],
                risk_factors=", ".join(result["risk_factors"]),
                risk_score=result["risk_score"],
                status="PENDING",
            ))
            logger.warning(
                f"Fraud alert raised for transaction {transaction.id}: "
                f"score={result['risk_score']}, severity={result['severity']}"
            )

        db.commit()

        return FraudDetectionResponse(
            transaction_id=transaction.id,
            account_number=request.account_number,
            severity=result["severity"],
            ai_analysis=result["analysis"],
            risk_factors=result["risk_factors"],
            risk_score=result["risk_score"],
            recommendation=result["recommendation"],
            is_fraudulent=result["risk_score"] >= FRAUDULENT_THRESHOLD,
        )

    @staticmethod
    def parse_analysis(response: str) -> Dict[str, Any]:
        """Read the RISK_SCORE/SEVERITY/... block, falling back to a neutral verdict."""
        fields = parse_fields(response, ["RISK_SCORE", "SEVERITY", "ANALYSIS", "RISK_FACTORS", "RECOMMENDATION"])
        if "RISK_SCORE" not in fields:
            logger.warning("Fraud analysis response has no RISK_SCORE line, using defaults")

        factors = split_list(fields.get("RISK_FACTORS", ""))
        recommendation = fields.get("RECOMMENDATION", "").strip().upper()
        return {
            "risk_score": to_float(fields.get("RISK_SCORE", ""), default=0.5),
            "severity": _severity(fields.get("SEVERITY", "")),
            "analysis": response.strip(),
            "risk_factors": factors or ["AI analysis pending"],
            "recommendation": recommendation if recommendation in ("APPROVE", "REVIEW", "BLOCK") else "REVIEW",
        }


class TransactionAnalysisService:
    SERVICE_NAME = "transaction-analysis"

    def __init__(self, llm: InstrumentedLLMClient):
        self.llm = llm

    def analyze_transactions(self, db: Session, request: TransactionAnalysisRequest) -> TransactionAnalysisResponse:
        logger.info(f"Analyzing transactions for account: {request.account_number}")

        account = get_account(db, request.account_number)
        end = request.end_date or datetime.utcnow()
        start = request.start_date or end - timedelta(days=30)
        transactions = transactions_between(db, request.account_number, start, end)

        if not transactions:
            return TransactionAnalysisResponse(
                account_number=request.account_number,
                analysis_type=request.analysis_type,
                ai_insights="No transactions found for the specified period.",
                category_breakdown={},
                key_findings=[],
                recommendations=[],
                statistics={},
            )

        statistics = self.calculate_statistics(transactions)
        breakdown = self.category_breakdown(transactions)

        stats_text = "\n".join(f"- {key}: {value}" for key, value in statistics.items())
        breakdown_text = "\n".join(f"- {category}: {amount:.2f}" for category, amount in breakdown.items())

        prompt = f"""You are a financial analyst for a banking institution. Analyze the following transaction data and provide insights.

Account Information:
- Account Number: {account.account_number}
- Account Type: {account.account_type}
- Current Balance: {account.balance}

Transaction Statistics:
{stats_text}

Category Breakdown:
{breakdown_text or "No category data available"}

Analysis Type Requested: {request.analysis_type.value}

Please provide:
1. Key insights about spending patterns, trends, or anomalies
2. Notable findings (e.g., unusual spending, category trends, timing patterns)
3. Actionable recommendations for the customer

Format your response clearly with sections for INSIGHTS, FINDINGS, and RECOMMENDATIONS.
"""
        insights = self.llm.complete(self.SERVICE_NAME, "analyze_transactions", prompt)

        findings = extract_section_items(insights, "FINDINGS", stop_headers=["RECOMMENDATIONS", "INSIGHTS"])
        recommendations = extract_section_items(insights, "RECOMMENDATIONS")

        return TransactionAnalysisResponse(
            account_number=request.account_number,
            analysis_type=request.analysis_type,
            ai_insights=insights,
            category_breakdown=breakdown,
            key_findings=findings or ["Analysis completed. Review AI insights for details."],
            recommendations=recommendations or ["Continue monitoring account activity."],
            statistics=statistics,
        )

    @staticmethod
    def calculate_statistics(transactions: List[Transaction]) -> Dict[str, Any]:
        debits = sum((t.amount for t in transactions if t.transaction_type == "DEBIT"), Decimal("0"))
        credits = sum((t.amount for t in transactions if t.transaction_type == "CREDIT"), Decimal("0"))
        count = len(transactions)
        dates = [t.transaction_date for t in transactions]

        return {
            "totalTransactions": count,
            "totalDebits": float(debits),
            "totalCredits": float(credits),
            "netAmount": float(credits - debits),
            "averageTransactionAmount": round(float(debits) / count, 2) if count else 0.0,
            "periodStart": min(dates).isoformat(),
            "periodEnd": max(dates).isoformat(),
        }

    @staticmethod
    def category_breakdown(transactions: List[Transaction]) -> Dict[str, float]:
        """Debit totals per merchant category."""
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for t in transactions:
            if t.transaction_type == "DEBIT":
                totals[t.merchant_category or "UNCATEGORIZED"] += t.amount
        return {category: float(amount) for category, amount in totals.items()}


class RiskAssessmentService:
    SERVICE_NAME = "risk-assessment"

    def __init__(self, llm: InstrumentedLLMClient):
        self.llm = llm

    def assess_risk(self, db: Session, request: RiskAssessmentRequest) -> RiskAssessmentResponse:
        logger.info(f"Assessing risk for account: {request.account_number}, customer: {request.customer_id}")

        account = get_account(db, request.account_number)
        customer = get_customer(db, request.customer_id)
        history = (
            recent_transactions(db, request.account_number, days=180)
            if request.include_transaction_history
            else []
        )

        prompt = f"""You are a senior risk analyst for a banking institution.
Perform a comprehensive risk assessment based on the following information.

{self._risk_context(account, customer, history)}
Analyze the following risk factors:
1. Transaction patterns and anomalies
2. Account activity and behavior
3. Customer profile and history
4. Compliance and regulatory considerations
5. Financial stability indicators

Provide your assessment in the following format:
OVERALL_RISK_LEVEL: [LOW/MEDIUM/HIGH/CRITICAL]
OVERALL_RISK_SCORE: [0.0 to 1.0]
ANALYSIS: [Detailed risk analysis]
RISK_FACTORS: [Comma-separated list of identified risk factors]
RECOMMENDATIONS: [Comma-separated list of risk mitigation recommendations]
"""
        response = self.llm.complete(self.SERVICE_NAME, "assess_risk", prompt)

        fields = parse_fields(
            response, ["OVERALL_RISK_LEVEL", "OVERALL_RISK_SCORE", "RISK_FACTORS", "RECOMMENDATIONS"]
        )
        if "OVERALL_RISK_SCORE" not in fields:
            logger.warning("Risk assessment response has no OVERALL_RISK_SCORE line, using defaults")

        level = _severity(fields.get("OVERALL_RISK_LEVEL", ""))
        score = to_float(fields.get("OVERALL_RISK_SCORE", ""), default=0.5)
        factors = split_list(fields.get("RISK_FACTORS", ""))
        recommendations = split_list(fields.get("RECOMMENDATIONS", ""))

        db.add(RiskAssessmentRecord(
            account_number=request.account_number,
            customer_id=request.customer_id,
            risk_level=level,
            risk_score=score,
            ai_analysis=response,
            risk_factors=", ".join(factors),
            recommendations=", ".join(recommendations),
        ))
        db.commit()

        return RiskAssessmentResponse(
            account_number=request.account_number,
            customer_id=request.customer_id,
            overall_risk_level=level,
            overall_risk_score=score,
            ai_analysis=response,
            risk_factors=factors,
            recommendations=recommendations,
        )

    @staticmethod
    def _risk_context(account: Account, customer: Customer, transactions: List[Transaction]) -> str:
        context = f"""Customer Profile:
- Customer ID: {customer.customer_id}
- Name: {customer.first_name} {customer.last_name}
- KYC Status: {customer.kyc_status}
- Current Risk Profile: {customer.risk_profile}
- Account Age: Active since {account.opened_date or "N/A"}

Account Information:
- Account Number: {account.account_number}
- Account Type: {account.account_type}
- Balance: {account.balance} {account.currency}
- Status: {account.status}
- Credit Limit: {account.credit_limit if account.credit_limit is not None else "N/A"}

"""
        if not transactions:
            return context + "No transaction history available for analysis.\n"

        categories: Dict[str, int] = defaultdict(int)
        for t in transactions:
            categories[t.merchant_category or "UNCATEGORIZED"] += 1

        debit_count = sum(1 for t in transactions if t.transaction_type == "DEBIT")
        credit_count = sum(1 for t in transactions if t.transaction_type == "CREDIT")
        context += (
            "Transaction History (Last 6 months):\n"
            f"- Total Transactions: {len(transactions)}\n"
            f"- Debits: {debit_count}\n"
            f"- Credits: {credit_count}\n"
            f"- Category Distribution: {dict(categories)}\n\n"
        )

        flagged = [t for t in transactions if t.status in ("FRAUD_SUSPECTED", "PENDING")][:5]
        if flagged:
            context += "Unusual/Flagged Transactions:\n"
            context += "".join(
                f"- {t.transaction_type}: {t.amount} {t.currency} at {t.merchant_name} (Status: {t.status})\n"
                for t in flagged
            )
        return context


_COMPLIANCE_FOCUS = {
    ComplianceType.AML: (
        "You are an Anti-Money Laundering (AML) compliance expert.\n"
        "Analyze the following customer and account information for AML compliance.",
        [
            "Suspicious transaction patterns",
            "Unusual account activity",
            "High-risk transactions",
            "Structuring or smurfing patterns",
            "Unusual geographic patterns",
        ],
    ),
    ComplianceType.KYC: (
        "You are a Know Your Customer (KYC) compliance expert.\n"
        "Analyze the following customer information for KYC compliance.",
        [
            "Customer identification and verification",
            "Customer due diligence requirements",
            "Beneficial ownership information",
            "Ongoing monitoring requirements",
            "Risk-based approach compliance",
        ],
    ),
    ComplianceType.SANCTIONS: (
        "You are a Sanctions screening compliance expert.\n"
        "Analyze the following information for sanctions compliance.",
        [
            "Sanctions list matches",
            "PEP (Politically Exposed Person) status",
            "High-risk jurisdictions",
            "Sanctioned entities or individuals",
            "Transaction screening requirements",
        ],
    ),
}


class ComplianceService:
    SERVICE_NAME = "compliance"

    def __init__(self, llm: InstrumentedLLMClient, knowledge: KnowledgeBase, context_top_k: int = 3):
        self.llm = llm
        self.knowledge = knowledge
        self.context_top_k = context_top_k

    def check_compliance(self, db: Session, request: ComplianceCheckRequest) -> ComplianceCheckResponse:
        compliance_type = request.compliance_type
        logger.info(
            f"Performing compliance check: type={compliance_type.value}, "
            f"account={request.account_number}, customer={request.customer_id}"
        )

        account = get_account(db, request.account_number)
        customer = get_customer(db, request.customer_id)
        history = recent_transactions(db, request.account_number, days=365)

        prompt = self.build_prompt(compliance_type, self._compliance_context(account, customer, history))
        response = self.llm.complete(self.SERVICE_NAME, "check_compliance", prompt)

        fields = parse_fields(response, ["STATUS", "FINDINGS", "RECOMMENDATIONS"])
        status = fields.get("STATUS", "").strip().upper()
        if status not in COMPLIANCE_STATUSES:
            logger.warning(f"Compliance response has no usable STATUS line ({status!r}), requiring review")
            status = "REQUIRES_REVIEW"
        findings = split_list(fields.get("FINDINGS", ""))
        recommendations = split_list(fields.get("RECOMMENDATIONS", ""))

        db.add(ComplianceReport(
            account_number=request.account_number,
            customer_id=request.customer_id,
            compliance_type=compliance_type.value,
            status=status,
            ai_analysis=response,
            findings=", ".join(findings),
            recommendations=", ".join(recommendations),
            report_date=datetime.utcnow(),
        ))
        db.commit()

        return ComplianceCheckResponse(
            account_number=request.account_number,
            customer_id=request.customer_id,
            compliance_type=compliance_type,
            status=status,
            ai_analysis=response,
            findings=findings,
            recommendations=recommendations,
        )

    def build_prompt(self, compliance_type: ComplianceType, context: str) -> str:
        format_block = (
            "Provide assessment in format:\n"
            "STATUS: [COMPLIANT/NON_COMPLIANT/REQUIRES_REVIEW]\n"
            "ANALYSIS: [Detailed compliance analysis]\n"
            "FINDINGS: [Comma-separated list of findings]\n"
            "RECOMMENDATIONS: [Comma-separated list of recommendations]\n"
        )

        if compliance_type not in _COMPLIANCE_FOCUS:
            return (
                "You are a regulatory compliance expert.\n"
                f"Analyze the following information for {compliance_type.value} compliance.\n\n"
                f"{context}\n{format_block}"
            )

        intro, checks = _COMPLIANCE_FOCUS[compliance_type]
        checklist = "\n".join(f"{i}. {check}" for i, check in enumerate(checks, start=1))

        # Sanctions screening works from the customer record alone
        knowledge = ""
        if compliance_type != ComplianceType.SANCTIONS:
            regulations = self.knowledge.context_for(
                f"{compliance_type.value} compliance regulations requirements", top_k=self.context_top_k
            )
            knowledge = f"Relevant {compliance_type.value} Regulations and Guidelines:\n{regulations}\n\n"

        return f"{intro}\n\n{knowledge}{context}\nCheck for:\n{checklist}\n\n{format_block}"

    @staticmethod
    def _compliance_context(account: Account, customer: Customer, transactions: List[Transaction]) -> str:
        context = f"""Customer Information:
- Customer ID: {customer.customer_id}
- Name: {customer.first_name} {customer.last_name}
- Date of Birth: {customer.date_of_birth or "N/A"}
- Address: {customer.address or "N/A"}, {customer.city or "N/A"}, {customer.country or "N/A"}
- KYC Status: {customer.kyc_status}
- Risk Profile: {customer.risk_profile}

Account Information:
- Account Number: {account.account_number}
- Account Type: {account.account_type}
- Balance: {account.balance} {account.currency}
- Opened Date: {account.opened_date or "N/A"}
- Status: {account.status}

"""
        if not transactions:
            return context

        context += f"Transaction History (Last 12 months): {len(transactions)} transactions\n"

        high_value = [t for t in transactions if t.amount > HIGH_VALUE_AMOUNT][:10]
        for t in high_value:
            context += (
                f"- High-value: {t.transaction_type} {t.amount} {t.currency} "
                f"at {t.merchant_name} on {t.transaction_date:%Y-%m-%d}\n"
            )

        international = [
            t for t in transactions
            if t.location and ("offshore" in t.location.lower() or "usa" not in t.location.lower())
        ][:10]
        for t in international:
            context += (
                f"- International: {t.amount} {t.currency} at {t.merchant_name} "
                f"({t.location}) on {t.transaction_date:%Y-%m-%d}\n"
            )
        return context
