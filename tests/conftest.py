import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from banking_gateway.database import init_db
from banking_gateway.llm import ChatModel, LLMResponse, InstrumentedLLMClient
from banking_gateway.ratelimit import MetricsAggregator
from banking_gateway.seed import seed_sample_data
from banking_gateway.services import InMemoryKnowledgeBase


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChatModel(ChatModel):
    """Returns a canned reply and remembers every prompt."""

    provider = "groq"

    def __init__(self, reply: str = "OK", input_tokens: int = 100, output_tokens: int = 50):
        self.reply = reply
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.error = None
        self.prompts = []

    def generate(self, prompt: str) -> LLMResponse:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return LLMResponse(
            content=self.reply,
            model="llama-3.3-70b-versatile",
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def metrics():
    return MetricsAggregator()


@pytest.fixture
def llm_client(chat_model, metrics):
    return InstrumentedLLMClient(chat_model, metrics)


@pytest.fixture
def knowledge_base():
    kb = InMemoryKnowledgeBase()
    kb.load_defaults()
    return kb


@pytest.fixture
def db_session():
    """In-memory SQLite session preloaded with the sample data set."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    seed_sample_data(session)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
