from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from banking_gateway.database import get_db
from banking_gateway.deps import get_interceptor, get_llm_client
from banking_gateway.llm import InstrumentedLLMClient
from banking_gateway.ratelimit import RateLimitInterceptor
from banking_gateway.schemas.banking import ChatRequest, ChatResponse, ChatHistoryEntry, ToolResult
from banking_gateway.services import BankingToolService, ChatHistoryService

router = APIRouter()

Interceptor = Annotated[RateLimitInterceptor, Depends(get_interceptor)]
LLM = Annotated[InstrumentedLLMClient, Depends(get_llm_client)]

tools = BankingToolService()


# Account tool lookups (database only, not rate limited)

@router.get("/tools/balance/{account_number}", response_model=ToolResult)
def get_balance(account_number: str, db: Session = Depends(get_db)):
    return ToolResult(account_number=account_number, result=tools.account_balance(db, account_number))


@router.get("/tools/transactions/{account_number}", response_model=ToolResult)
def get_transactions(
    account_number: str,
    limit: int = Query(5, ge=1),
    db: Session = Depends(get_db),
):
    return ToolResult(account_number=account_number, result=tools.recent_transactions(db, account_number, limit))


@router.get("/tools/status/{account_number}", response_model=ToolResult)
def get_account_status(account_number: str, db: Session = Depends(get_db)):
    return ToolResult(account_number=account_number, result=tools.account_status(db, account_number))


@router.get("/tools/spending/{account_number}", response_model=ToolResult)
def get_spending_by_category(
    account_number: str,
    days: int = Query(30, ge=1, le=3650),
    db: Session = Depends(get_db),
):
    return ToolResult(account_number=account_number, result=tools.spending_by_category(db, account_number, days))


@router.get("/tools/summary/{account_number}", response_model=ToolResult)
def get_account_summary(account_number: str, db: Session = Depends(get_db)):
    return ToolResult(account_number=account_number, result=tools.account_summary(db, account_number))


# Chat history

@router.post("/history/chat", response_model=ChatResponse)
def chat_with_history(
    request: ChatRequest,
    interceptor: Interceptor,
    llm: LLM,
    db: Session = Depends(get_db),
):
    """Chat that carries the customer's last exchanges as context"""
    service = ChatHistoryService(llm)
    return interceptor.execute(service.SERVICE_NAME, service.chat_with_history, db, request)


@router.get("/history/{customer_id}", response_model=List[ChatHistoryEntry])
def get_history(
    customer_id: str,
    llm: LLM,
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return ChatHistoryService(llm).get_history(db, customer_id, limit)


@router.delete("/history/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def clear_history(customer_id: str, llm: LLM, db: Session = Depends(get_db)):
    ChatHistoryService(llm).clear_history(db, customer_id)
