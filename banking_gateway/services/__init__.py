"""AI operation handlers and the knowledge base they consult."""

from .common import NotFoundError
from .knowledge import KnowledgeBase, InMemoryKnowledgeBase, SearchHit
from .analysis import FraudDetectionService, TransactionAnalysisService, RiskAssessmentService, ComplianceService
from .assistant import (
    CustomerServiceChatbot,
    ChatHistoryService,
    RecommendationService,
    CodeGenerationService,
    DocumentSearchService,
)
from .tools import BankingToolService

__all__ = [
    "NotFoundError",
    "KnowledgeBase",
    "InMemoryKnowledgeBase",
    "SearchHit",
    "FraudDetectionService",
    "TransactionAnalysisService",
    "RiskAssessmentService",
    "ComplianceService",
    "CustomerServiceChatbot",
    "ChatHistoryService",
    "RecommendationService",
    "CodeGenerationService",
    "DocumentSearchService",
    "BankingToolService",
]
