from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from banking_gateway.config import Settings
from banking_gateway.database import get_db
from banking_gateway.deps import get_interceptor, get_llm_client, get_knowledge_base, get_settings
from banking_gateway.llm import InstrumentedLLMClient
from banking_gateway.ratelimit import RateLimitInterceptor
from banking_gateway.schemas.banking import (
    ChatRequest,
    ChatResponse,
    RecommendationRequest,
    RecommendationResponse,
    CodeGenerationRequest,
    CodeGenerationResponse,
    DocumentIndexRequest,
    DocumentSearchRequest,
    DocumentSearchResponse,
)
from banking_gateway.services import (
    KnowledgeBase,
    CustomerServiceChatbot,
    RecommendationService,
    CodeGenerationService,
    DocumentSearchService,
)

router = APIRouter()

Interceptor = Annotated[RateLimitInterceptor, Depends(get_interceptor)]
LLM = Annotated[InstrumentedLLMClient, Depends(get_llm_client)]
Knowledge = Annotated[KnowledgeBase, Depends(get_knowledge_base)]
AppSettings = Annotated[Settings, Depends(get_settings)]


@router.post("/customer-service/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    interceptor: Interceptor,
    llm: LLM,
    knowledge: Knowledge,
    settings: AppSettings,
    db: Session = Depends(get_db),
):
    """Answer a customer inquiry"""
    service = CustomerServiceChatbot(llm, knowledge, settings.KNOWLEDGE_TOP_K)
    return interceptor.execute(service.SERVICE_NAME, service.handle_inquiry, db, request)


@router.post("/recommendations/products", response_model=RecommendationResponse)
def recommend_products(
    request: RecommendationRequest,
    interceptor: Interceptor,
    llm: LLM,
    db: Session = Depends(get_db),
):
    service = RecommendationService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.recommend_products, db, request)


@router.get("/recommendations/similar-customers/{customer_id}", response_model=List[str])
def similar_customers(
    customer_id: str,
    interceptor: Interceptor,
    llm: LLM,
    top_k: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Customers with the most similar profiles"""
    service = RecommendationService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.find_similar_customers, db, customer_id, top_k)


@router.get("/recommendations/transaction-based/{account_number}", response_model=List[str])
def transaction_based_recommendations(
    account_number: str,
    interceptor: Interceptor,
    llm: LLM,
    top_k: int = Query(3, ge=1, le=10),
    db: Session = Depends(get_db),
):
    """Product ids that fit the account's recent spending"""
    service = RecommendationService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.recommend_based_on_transactions, db, account_number, top_k)


@router.post("/code/generate", response_model=CodeGenerationResponse)
def generate_code(request: CodeGenerationRequest, interceptor: Interceptor, llm: LLM):
    service = CodeGenerationService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.generate_code, request)


@router.post("/code/complete", response_model=CodeGenerationResponse)
def complete_code(request: CodeGenerationRequest, interceptor: Interceptor, llm: LLM):
    service = CodeGenerationService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.complete_code, request)


@router.post("/code/refactor", response_model=CodeGenerationResponse)
def refactor_code(request: CodeGenerationRequest, interceptor: Interceptor, llm: LLM):
    service = CodeGenerationService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.refactor_code, request)


@router.post("/code/explain", response_model=CodeGenerationResponse)
def explain_code(request: CodeGenerationRequest, llm: LLM):
    """Explain a snippet (not rate limited)"""
    return CodeGenerationService(llm).explain_code(request)


@router.post("/documents/search", response_model=DocumentSearchResponse)
def search_documents(request: DocumentSearchRequest, interceptor: Interceptor, knowledge: Knowledge):
    service = DocumentSearchService(knowledge)
    return interceptor.execute(service.SERVICE_NAME, service.search_documents, request)


@router.post("/documents/index", status_code=status.HTTP_201_CREATED)
def index_document(request: DocumentIndexRequest, knowledge: Knowledge):
    DocumentSearchService(knowledge).index_document(request)
    return {"document_id": request.document_id, "status": "indexed"}


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(document_id: str, knowledge: Knowledge):
    DocumentSearchService(knowledge).delete_document(document_id)
