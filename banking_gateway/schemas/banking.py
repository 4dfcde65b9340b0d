from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, List, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ComplianceType(str, Enum):
    AML = "AML"
    KYC = "KYC"
    SANCTIONS = "SANCTIONS"
    REGULATORY = "REGULATORY"


class AnalysisType(str, Enum):
    SPENDING_PATTERNS = "SPENDING_PATTERNS"
    CATEGORY_BREAKDOWN = "CATEGORY_BREAKDOWN"
    TRENDS = "TRENDS"
    ANOMALIES = "ANOMALIES"


class ChatContext(str, Enum):
    GENERAL = "GENERAL"
    ACCOUNT_INFO = "ACCOUNT_INFO"
    TRANSACTION_HISTORY = "TRANSACTION_HISTORY"


# Fraud detection

class FraudDetectionRequest(BaseModel):
    """Transaction to screen for fraud"""
    account_number: str
    transaction_type: str
    amount: Decimal = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    merchant_name: str
    merchant_category: str
    location: str
    transaction_date: datetime
    description: Optional[str] = None
    counterparty_account: Optional[str] = None


class FraudDetectionResponse(BaseModel):
    transaction_id: int
    account_number: str
    severity: str
    ai_analysis: str
    risk_factors: List[str]
    risk_score: float
    recommendation: str
    is_fraudulent: bool


# Transaction analysis

class TransactionAnalysisRequest(BaseModel):
    account_number: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    analysis_type: AnalysisType = AnalysisType.SPENDING_PATTERNS


class TransactionAnalysisResponse(BaseModel):
    account_number: str
    analysis_type: AnalysisType
    ai_insights: str
    category_breakdown: Dict[str, float]
    key_findings: List[str]
    recommendations: List[str]
    statistics: Dict[str, Any]


# Risk assessment

class RiskAssessmentRequest(BaseModel):
    account_number: str
    customer_id: str
    include_transaction_history: bool = True
    include_compliance_check: bool = False


class RiskAssessmentResponse(BaseModel):
    account_number: str
    customer_id: str
    overall_risk_level: str
    overall_risk_score: float
    ai_analysis: str
    risk_factors: List[str]
    recommendations: List[str]


# Compliance

class ComplianceCheckRequest(BaseModel):
    account_number: str
    customer_id: str
    compliance_type: ComplianceType


class ComplianceCheckResponse(BaseModel):
    account_number: str
    customer_id: str
    compliance_type: ComplianceType
    status: str
    ai_analysis: str
    findings: List[str]
    recommendations: List[str]


# Customer service

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    customer_id: Optional[str] = None
    account_number: Optional[str] = None
    context: ChatContext = ChatContext.GENERAL


class ChatResponse(BaseModel):
    response: str
    customer_id: Optional[str]
    timestamp: datetime
    context: ChatContext
    requires_human_agent: bool


class ChatHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: Optional[str]
    context: str
    message: str
    response: str
    requires_human_agent: bool
    created_at: datetime


# Recommendations

class RecommendationRequest(BaseModel):
    customer_id: str
    account_number: Optional[str] = None
    preferences: List[str] = Field(default_factory=list)
    recommendation_type: str = "PRODUCTS"
    top_k: int = Field(3, ge=1, le=10)


class RecommendationItem(BaseModel):
    item_id: str
    item_name: str
    category: str
    relevance_score: float
    reason: str


class RecommendationResponse(BaseModel):
    customer_id: str
    recommendation_type: str
    recommendations: List[RecommendationItem]
    metadata: Dict[str, Any] = Field(default_factory=dict)


# Code generation

class CodeGenerationRequest(BaseModel):
    description: str = Field(..., min_length=1)
    language: str = "PYTHON"
    framework: Optional[str] = None
    style: Optional[str] = None
    context: Optional[str] = None
    code: Optional[str] = Field(None, description="Existing code to complete, explain or refactor")


class CodeGenerationResponse(BaseModel):
    generated_code: str
    language: str
    explanation: str
    suggestions: List[str]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    generation_time_ms: int


# Document search

class DocumentIndexRequest(BaseModel):
    document_id: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentSearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    top_k: int = Field(5, ge=1, le=50)
    similarity_threshold: float = Field(0.0, ge=0.0, le=1.0)
    document_type: Optional[str] = None


class DocumentResult(BaseModel):
    document_id: str
    content: str
    similarity_score: float
    metadata: Dict[str, Any]
    snippet: str


class DocumentSearchResponse(BaseModel):
    query: str
    top_k: int
    results: List[DocumentResult]
    total_results: int
    search_time_ms: float


# Account tool lookups

class ToolResult(BaseModel):
    account_number: str
    result: str
