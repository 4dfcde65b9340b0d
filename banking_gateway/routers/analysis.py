from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from banking_gateway.config import Settings
from banking_gateway.database import get_db
from banking_gateway.deps import get_interceptor, get_llm_client, get_knowledge_base, get_settings
from banking_gateway.llm import InstrumentedLLMClient
from banking_gateway.ratelimit import RateLimitInterceptor
from banking_gateway.schemas.banking import (
    FraudDetectionRequest,
    FraudDetectionResponse,
    TransactionAnalysisRequest,
    TransactionAnalysisResponse,
    RiskAssessmentRequest,
    RiskAssessmentResponse,
    ComplianceCheckRequest,
    ComplianceCheckResponse,
)
from banking_gateway.services import (
    KnowledgeBase,
    FraudDetectionService,
    TransactionAnalysisService,
    RiskAssessmentService,
    ComplianceService,
)

router = APIRouter()

Interceptor = Annotated[RateLimitInterceptor, Depends(get_interceptor)]
LLM = Annotated[InstrumentedLLMClient, Depends(get_llm_client)]
Knowledge = Annotated[KnowledgeBase, Depends(get_knowledge_base)]
AppSettings = Annotated[Settings, Depends(get_settings)]

# Handlers are sync so FastAPI runs them in its threadpool


@router.post("/fraud-detection/analyze", response_model=FraudDetectionResponse)
def analyze_fraud(
    request: FraudDetectionRequest,
    interceptor: Interceptor,
    llm: LLM,
    knowledge: Knowledge,
    settings: AppSettings,
    db: Session = Depends(get_db),
):
    """Screen a transaction for fraud and record it"""
    service = FraudDetectionService(llm, knowledge, settings.KNOWLEDGE_TOP_K)
    return interceptor.execute(service.SERVICE_NAME, service.detect_fraud, db, request)


@router.post("/transaction-analysis/analyze", response_model=TransactionAnalysisResponse)
def analyze_transactions(
    request: TransactionAnalysisRequest,
    interceptor: Interceptor,
    llm: LLM,
    db: Session = Depends(get_db),
):
    """Summarize an account's spending over a period"""
    service = TransactionAnalysisService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.analyze_transactions, db, request)


@router.post("/risk-assessment/assess", response_model=RiskAssessmentResponse)
def assess_risk(
    request: RiskAssessmentRequest,
    interceptor: Interceptor,
    llm: LLM,
    db: Session = Depends(get_db),
):
    """Assess overall account and customer risk"""
    service = RiskAssessmentService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.assess_risk, db, request)


@router.post("/compliance/check", response_model=ComplianceCheckResponse)
def check_compliance(
    request: ComplianceCheckRequest,
    interceptor: Interceptor,
    llm: LLM,
    knowledge: Knowledge,
    settings: AppSettings,
    db: Session = Depends(get_db),
):
    """Run an AML, KYC, sanctions or regulatory check"""
    service = ComplianceService(llm, knowledge, settings.KNOWLEDGE_TOP_K)
    return interceptor.execute(service.SERVICE_NAME, service.check_compliance, db, request)
