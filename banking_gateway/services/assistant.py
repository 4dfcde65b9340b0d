"""
Customer-facing assistant handlers: service chat (single-turn and with
history), product recommendations, code generation and document search.
"""

import re
import time
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from banking_gateway.llm import InstrumentedLLMClient
from banking_gateway.llm.parsing import to_float
from banking_gateway.models import Account, ChatMessage, Customer
from banking_gateway.schemas.banking import (
    ChatContext,
    ChatRequest,
    ChatResponse,
    RecommendationRequest,
    RecommendationItem,
    RecommendationResponse,
    CodeGenerationRequest,
    CodeGenerationResponse,
    DocumentIndexRequest,
    DocumentSearchRequest,
    DocumentResult,
    DocumentSearchResponse,
)
from .common import (
    NotFoundError,
    find_account,
    find_customer,
    get_account,
    get_customer,
    recent_transactions,
    mask_account_number,
)
from .knowledge import KnowledgeBase, term_similarity

logger = logging.getLogger(__name__)


class CustomerServiceChatbot:
    SERVICE_NAME = "customer-service"

    # Phrases in the model's answer that mean it could not resolve the inquiry
    RESPONSE_ESCALATION_PHRASES = ("human agent", "escalate", "cannot help")
    # Requests that always go to a person
    MESSAGE_ESCALATION_PHRASES = ("close account", "dispute", "fraud", "complaint")

    def __init__(self, llm: InstrumentedLLMClient, knowledge: KnowledgeBase, context_top_k: int = 3):
        self.llm = llm
        self.knowledge = knowledge
        self.context_top_k = context_top_k

    def handle_inquiry(self, db: Session, request: ChatRequest) -> ChatResponse:
        logger.info(f"Handling customer inquiry: customer_id={request.customer_id}, context={request.context.value}")

        prompt = f"""You are a helpful and professional banking customer service assistant.
You have access to customer account information and transaction history.
Always be polite, accurate, and helpful. If you don't have specific information,
guide the customer on how to obtain it or escalate to a human agent.

Important guidelines:
- Never share sensitive information like full account numbers or PINs
- Always verify customer identity before discussing account details
- Be clear about transaction limits, fees, and policies
- If a question requires human intervention, clearly state that
- Provide accurate information based on the context provided

Banking Knowledge Base:
{self.knowledge.context_for(request.message, top_k=self.context_top_k)}

Customer Context:
{self.banking_context(db, request)}

Customer Question: {request.message}"""

        answer = self.llm.complete(self.SERVICE_NAME, "handle_inquiry", prompt)
        escalate = self.requires_human_agent(answer, request.message)

        db.add(ChatMessage(
            customer_id=request.customer_id,
            context=request.context.value,
            message=request.message,
            response=answer,
            requires_human_agent=escalate,
        ))
        db.commit()

        return ChatResponse(
            response=answer,
            customer_id=request.customer_id,
            timestamp=datetime.now(timezone.utc),
            context=request.context,
            requires_human_agent=escalate,
        )

    def banking_context(self, db: Session, request: ChatRequest) -> str:
        parts = []

        customer = find_customer(db, request.customer_id)
        if customer is not None:
            parts.append(
                "Customer Information:\n"
                f"- Name: {customer.first_name} {customer.last_name}\n"
                f"- KYC Status: {customer.kyc_status}\n"
                f"- Risk Profile: {customer.risk_profile}\n"
            )

        account = find_account(db, request.account_number)
        if account is not None:
            parts.append(
                "Account Information:\n"
                f"- Account Number: {mask_account_number(account.account_number)}\n"
                f"- Account Type: {account.account_type}\n"
                f"- Balance: {account.balance} {account.currency}\n"
                f"- Status: {account.status}\n"
            )

            if request.context == ChatContext.TRANSACTION_HISTORY:
                transactions = recent_transactions(db, account.account_number, days=7)[:5]
                if transactions:
                    parts.append("Recent Transactions (Last 7 days):\n" + "".join(
                        f"- {t.transaction_type}: {t.amount} {t.currency} at {t.merchant_name} "
                        f"on {t.transaction_date:%Y-%m-%d}\n"
                        for t in transactions
                    ))

        if not parts:
            return "General banking context. No specific customer or account information available.\n"
        return "\n".join(parts)

    @classmethod
    def requires_human_agent(cls, answer: str, message: str) -> bool:
        answer = answer.lower()
        message = message.lower()
        return (
            any(phrase in answer for phrase in cls.RESPONSE_ESCALATION_PHRASES)
            or any(phrase in message for phrase in cls.MESSAGE_ESCALATION_PHRASES)
        )


class ChatHistoryService:
    """Multi-turn chat that replays the customer's recent exchanges into the prompt."""

    SERVICE_NAME = "customer-service"

    # Exchanges replayed as conversation context
    HISTORY_WINDOW = 10

    def __init__(self, llm: InstrumentedLLMClient):
        self.llm = llm

    def chat_with_history(self, db: Session, request: ChatRequest) -> ChatResponse:
        logger.info(f"Handling chat with history for customer: {request.customer_id}")

        history = self.get_history(db, request.customer_id, limit=self.HISTORY_WINDOW) if request.customer_id else []

        # Stored newest first; replay oldest first
        turns = []
        for entry in reversed(history):
            turns.append(f"Customer: {entry.message}")
            turns.append(f"Assistant: {entry.response}")
        conversation = "\n".join(turns) if turns else "(no previous messages)"

        prompt = f"""You are a helpful and professional banking customer service assistant.
Continue the conversation below, using earlier messages for context.

Conversation so far:
{conversation}

Customer: {request.message}
Assistant:"""

        answer = self.llm.complete(self.SERVICE_NAME, "chat_with_history", prompt)
        escalate = CustomerServiceChatbot.requires_human_agent(answer, request.message)

        db.add(ChatMessage(
            customer_id=request.customer_id,
            context=request.context.value,
            message=request.message,
            response=answer,
            requires_human_agent=escalate,
        ))
        db.commit()

        return ChatResponse(
            response=answer,
            customer_id=request.customer_id,
            timestamp=datetime.now(timezone.utc),
            context=request.context,
            requires_human_agent=escalate,
        )

    def get_history(self, db: Session, customer_id: str, limit: int = 20) -> List[ChatMessage]:
        """A customer's exchanges, newest first."""
        query = (
            select(ChatMessage)
            .where(ChatMessage.customer_id == customer_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(limit)
        )
        return list(db.scalars(query))

    def clear_history(self, db: Session, customer_id: str) -> int:
        logger.info(f"Clearing chat history for customer: {customer_id}")
        result = db.execute(delete(ChatMessage).where(ChatMessage.customer_id == customer_id))
        db.commit()
        return result.rowcount


BANKING_PRODUCTS: Dict[str, Dict[str, Any]] = {
    "premium-checking": {
        "name": "Premium Checking Account",
        "category": "CHECKING",
        "description": "High-yield checking account with premium benefits",
        "min_balance": 5000,
        "features": ["No monthly fees", "Free ATM withdrawals", "Interest earning"],
    },
    "savings-plus": {
        "name": "Savings Plus Account",
        "category": "SAVINGS",
        "description": "High-interest savings account with flexible terms",
        "min_balance": 1000,
        "features": ["Competitive interest rates", "Easy transfers", "FDIC insured"],
    },
    "credit-card-rewards": {
        "name": "Rewards Credit Card",
        "category": "CREDIT",
        "description": "Cashback and travel rewards credit card",
        "min_balance": 0,
        "features": ["2% cashback", "Travel rewards", "No annual fee first year"],
    },
    "investment-advisory": {
        "name": "Investment Advisory Service",
        "category": "INVESTMENT",
        "description": "Professional investment management and advisory",
        "min_balance": 25000,
        "features": ["Personal advisor", "Diversified portfolio", "Tax optimization"],
    },
    "mortgage-loan": {
        "name": "Mortgage Loan",
        "category": "LOAN",
        "description": "Competitive mortgage rates for home purchase or refinance",
        "min_balance": 0,
        "features": ["Low interest rates", "Flexible terms", "Quick approval"],
    },
}


class RecommendationService:
    SERVICE_NAME = "recommendation"

    def __init__(self, llm: InstrumentedLLMClient):
        self.llm = llm

    def recommend_products(self, db: Session, request: RecommendationRequest) -> RecommendationResponse:
        logger.info(f"Generating product recommendations for customer: {request.customer_id}")

        customer = get_customer(db, request.customer_id)

        profile = [
            f"Customer ID: {customer.customer_id}",
            f"Name: {customer.first_name} {customer.last_name}",
            f"Risk Profile: {customer.risk_profile}",
            f"KYC Status: {customer.kyc_status}",
        ]
        account = find_account(db, request.account_number)
        if account is not None:
            profile.append(f"Account Type: {account.account_type}")
            profile.append(f"Balance: {account.balance}")
        if request.preferences:
            profile.append(f"Preferences: {', '.join(request.preferences)}")

        products = "\n".join(
            f"- {product_id}: {product['name']} - {product['description']}"
            for product_id, product in BANKING_PRODUCTS.items()
        )

        prompt = f"""You are a banking product recommendation expert.
Based on the following customer profile, recommend the most suitable banking products.

Customer Profile:
{chr(10).join(profile)}

Available Products:
{products}

Provide recommendations in the following format:
PRODUCT_ID: [id]
REASON: [why this product is recommended]
RELEVANCE_SCORE: [0.0 to 1.0]

Provide top {request.top_k} recommendations.
"""
        response = self.llm.complete(self.SERVICE_NAME, "recommend_products", prompt)
        items = self.parse_recommendations(response)[:request.top_k]

        return RecommendationResponse(
            customer_id=request.customer_id,
            recommendation_type=request.recommendation_type,
            recommendations=items,
            metadata={
                "generatedAt": datetime.now(timezone.utc).isoformat(),
                "totalProducts": len(BANKING_PRODUCTS),
            },
        )

    @staticmethod
    def customer_profile(db: Session, customer: Customer) -> str:
        """Attributes two customers can share; identifiers and names are left out."""
        account_types = db.scalars(
            select(Account.account_type).where(Account.customer_id == customer.customer_id)
        ).all()
        return (
            f"{customer.risk_profile} risk {customer.kyc_status} kyc "
            f"{customer.country or ''} {' '.join(sorted(set(account_types)))}"
        )

    def find_similar_customers(self, db: Session, customer_id: str, top_k: int = 5) -> List[str]:
        """
        Other customers ranked by profile similarity.

        Similarity is the term overlap of risk profile, KYC status, country
        and held account types. Ties are ordered by customer id.
        """
        logger.info(f"Finding similar customers for: {customer_id}")

        customer = get_customer(db, customer_id)
        profile = self.customer_profile(db, customer)

        scores = []
        for other in db.scalars(select(Customer).where(Customer.customer_id != customer_id)):
            scores.append((term_similarity(profile, self.customer_profile(db, other)), other.customer_id))

        scores.sort(key=lambda item: (-item[0], item[1]))
        return [other_id for _, other_id in scores[:top_k]]

    def recommend_based_on_transactions(self, db: Session, account_number: str, top_k: int = 3) -> List[str]:
        """
        Product ids matching the account's last six months of activity.

        The account type, transaction types and merchant categories are
        compared against each product's name, description, category and
        features. Products with no overlap are not returned.
        """
        logger.info(f"Generating recommendations based on transactions for account: {account_number}")

        account = get_account(db, account_number)
        transactions = recent_transactions(db, account_number, days=180)

        pattern = " ".join(
            [account.account_type]
            + [t.transaction_type for t in transactions]
            + [t.merchant_category or "" for t in transactions]
        )

        scores = []
        for product_id, product in BANKING_PRODUCTS.items():
            description = " ".join(
                [product["name"], product["description"], product["category"]] + product["features"]
            )
            score = term_similarity(pattern, description)
            if score > 0:
                scores.append((score, product_id))

        scores.sort(key=lambda item: (-item[0], item[1]))
        return [product_id for _, product_id in scores[:top_k]]

    @staticmethod
    def _item(product_id: str, reason: Optional[str], score: float) -> RecommendationItem:
        product = BANKING_PRODUCTS.get(product_id, {})
        return RecommendationItem(
            item_id=product_id,
            item_name=product.get("name", product_id),
            category=product.get("category", "UNKNOWN"),
            relevance_score=score,
            reason=reason or "Recommended based on your profile",
        )

    @classmethod
    def parse_recommendations(cls, response: str) -> List[RecommendationItem]:
        """
        Read PRODUCT_ID/REASON/RELEVANCE_SCORE blocks.

        A new PRODUCT_ID line closes the previous block. When nothing parses
        the two entry-level products are suggested.
        """
        items: List[RecommendationItem] = []
        product_id: Optional[str] = None
        reason: Optional[str] = None
        score = 0.5

        for line in response.splitlines():
            key, sep, value = line.strip().partition(":")
            if not sep:
                continue
            key = key.strip().strip("*").strip().upper()
            value = value.strip()

            if key == "PRODUCT_ID":
                if product_id:
                    items.append(cls._item(product_id, reason, score))
                product_id, reason, score = value.strip("[]").strip(), None, 0.5
            elif key == "REASON":
                reason = value
            elif key == "RELEVANCE_SCORE":
                score = to_float(value, default=0.5)

        if product_id:
            items.append(cls._item(product_id, reason, score))

        if not items:
            logger.warning("No recommendations could be parsed, using defaults")
            return [
                cls._item("premium-checking", "Suitable for your account type", 0.7),
                cls._item("savings-plus", "Good savings option", 0.6),
            ]
        return items


_CODE_FENCE = re.compile(r"```[\w+#.-]*\n(.*?)```", re.DOTALL)
_ITEM_PREFIX = re.compile(r"^(?:[-*]|\d+[.)])\s*")


def _extract_section(text: str, name: str) -> Optional[str]:
    """Text after ``NAME:`` up to the next blank line, or None when absent."""
    start = text.find(f"{name}:")
    if start == -1:
        return None
    start += len(name) + 1
    end = text.find("\n\n", start)
    section = text[start:] if end == -1 else text[start:end]
    return section.strip()


def extract_code(text: str) -> Optional[str]:
    """Prefer a fenced block; otherwise the CODE: section."""
    fenced = _CODE_FENCE.search(text)
    if fenced:
        return fenced.group(1).rstrip()
    return _extract_section(text, "CODE")


def extract_suggestions(text: str) -> List[str]:
    start = text.find("SUGGESTIONS:")
    if start == -1:
        return []

    suggestions = []
    for line in text[start + len("SUGGESTIONS:"):].strip().splitlines():
        line = _ITEM_PREFIX.sub("", line.strip()).strip()
        if line:
            suggestions.append(line)
    return suggestions


class CodeGenerationService:
    SERVICE_NAME = "code-generation"

    def __init__(self, llm: InstrumentedLLMClient):
        self.llm = llm

    def _respond(self, operation: str, prompt: str, language: str, started: float, **metadata) -> CodeGenerationResponse:
        answer = self.llm.complete(self.SERVICE_NAME, operation, prompt)
        code = extract_code(answer)
        explanation = _extract_section(answer, "EXPLANATION")
        return CodeGenerationResponse(
            generated_code=code if code is not None else answer,
            language=language,
            explanation=explanation or "Code generated successfully",
            suggestions=extract_suggestions(answer),
            metadata=metadata,
            generation_time_ms=int((time.perf_counter() - started) * 1000),
        )

    def generate_code(self, request: CodeGenerationRequest) -> CodeGenerationResponse:
        started = time.perf_counter()
        logger.info(f"Generating code: language={request.language}")

        extras = ""
        if request.framework:
            extras += f"Framework: {request.framework}\n"
        if request.style:
            extras += f"Code Style: {request.style}\n"
        if request.context:
            extras += f"Additional Context: {request.context}\n"

        prompt = f"""You are an expert {request.language} developer.
Generate clean, production-ready code based on the following requirements.

Requirements:
{request.description}

{extras}
Format your response as:
CODE:
[your code here]

EXPLANATION:
[explanation here]

SUGGESTIONS:
[suggestions, one per line]
"""
        return self._respond("generate_code", prompt, request.language, started)

    def complete_code(self, request: CodeGenerationRequest) -> CodeGenerationResponse:
        started = time.perf_counter()
        logger.info(f"Completing code: language={request.language}")

        prompt = f"""You are an expert {request.language} developer.
Complete the following partial code. Provide only the completion, maintaining the existing code style.

Partial Code:
{request.code or request.description}

Provide the completed code with a brief explanation.
"""
        return self._respond("complete_code", prompt, request.language, started)

    def refactor_code(self, request: CodeGenerationRequest) -> CodeGenerationResponse:
        started = time.perf_counter()
        focus = request.style or "readability"
        logger.info(f"Refactoring code: language={request.language}, focus={focus}")

        prompt = f"""You are an expert {request.language} developer specializing in code refactoring.
Refactor the following code with focus on: {focus}

Goal:
{request.description}

Original Code:
{request.code or ""}

Provide:
1. Refactored code
2. Explanation of changes
3. Benefits of the refactoring
4. Any trade-offs or considerations
"""
        return self._respond("refactor_code", prompt, request.language, started, refactoringType=focus)

    def explain_code(self, request: CodeGenerationRequest) -> CodeGenerationResponse:
        started = time.perf_counter()
        code = request.code or request.description
        logger.info(f"Explaining code: language={request.language}")

        prompt = f"""You are an expert {request.language} developer and educator.
Explain the following code in detail, including:
1. What the code does
2. How it works
3. Key concepts and patterns used
4. Potential improvements or considerations

Code:
{code}
"""
        answer = self.llm.complete(self.SERVICE_NAME, "explain_code", prompt)
        return CodeGenerationResponse(
            generated_code=code,
            language=request.language,
            explanation=answer,
            suggestions=extract_suggestions(answer),
            metadata={"type": "explanation"},
            generation_time_ms=int((time.perf_counter() - started) * 1000),
        )


class DocumentSearchService:
    SERVICE_NAME = "document-search"

    def __init__(self, knowledge: KnowledgeBase):
        self.knowledge = knowledge

    def index_document(self, request: DocumentIndexRequest) -> None:
        logger.info(f"Indexing document: {request.document_id}")
        metadata = dict(request.metadata)
        metadata["documentId"] = request.document_id
        metadata["indexedAt"] = datetime.now(timezone.utc).isoformat()
        self.knowledge.add(request.document_id, request.content, metadata)

    def search_documents(self, request: DocumentSearchRequest) -> DocumentSearchResponse:
        started = time.perf_counter()
        logger.info(f"Searching documents with query: {request.query}")

        hits = self.knowledge.search(
            request.query,
            top_k=request.top_k,
            threshold=request.similarity_threshold,
            document_type=request.document_type,
        )
        results = [
            DocumentResult(
                document_id=hit.document.document_id,
                content=hit.document.content,
                similarity_score=hit.score,
                metadata=hit.document.metadata,
                snippet=hit.snippet,
            )
            for hit in hits
        ]

        return DocumentSearchResponse(
            query=request.query,
            top_k=request.top_k,
            results=results,
            total_results=len(results),
            search_time_ms=(time.perf_counter() - started) * 1000,
        )

    def delete_document(self, document_id: str) -> None:
        logger.info(f"Deleting document: {document_id}")
        if not self.knowledge.delete(document_id):
            raise NotFoundError(f"Document not found: {document_id}")
