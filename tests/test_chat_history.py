import pytest
from sqlalchemy import select

from banking_gateway.models import ChatMessage
from banking_gateway.schemas.banking import ChatRequest
from banking_gateway.services import ChatHistoryService


@pytest.fixture
def history_service(llm_client):
    return ChatHistoryService(llm_client)


def _add_messages(db_session, customer_id, count):
    for i in range(count):
        db_session.add(ChatMessage(customer_id=customer_id, message=f"m{i}", response=f"r{i}"))
    db_session.commit()


def test_first_chat_has_no_previous_messages(db_session, history_service, chat_model):
    chat_model.reply = "Your balance is shown in the app."

    response = history_service.chat_with_history(
        db_session, ChatRequest(message="Where is my balance?", customer_id="CUST001")
    )

    assert response.response == "Your balance is shown in the app."
    assert response.customer_id == "CUST001"
    assert "(no previous messages)" in chat_model.prompts[0]
    assert chat_model.prompts[0].endswith("Customer: Where is my balance?\nAssistant:")

    saved = db_session.scalar(select(ChatMessage))
    assert saved.message == "Where is my balance?"
    assert saved.response == "Your balance is shown in the app."


def test_second_chat_replays_the_first(db_session, history_service, chat_model):
    chat_model.reply = "Hello Jane."
    history_service.chat_with_history(db_session, ChatRequest(message="Hi, I'm Jane", customer_id="CUST001"))

    chat_model.reply = "You told me your name is Jane."
    history_service.chat_with_history(db_session, ChatRequest(message="What is my name?", customer_id="CUST001"))

    prompt = chat_model.prompts[1]
    assert "Customer: Hi, I'm Jane\nAssistant: Hello Jane." in prompt
    assert "(no previous messages)" not in prompt


def test_only_the_last_ten_exchanges_are_replayed(db_session, history_service, chat_model):
    _add_messages(db_session, "CUST001", 12)

    history_service.chat_with_history(db_session, ChatRequest(message="next", customer_id="CUST001"))

    prompt = chat_model.prompts[0]
    assert "Customer: m0\n" not in prompt
    assert "Customer: m1\n" not in prompt
    # Oldest first
    assert prompt.index("Customer: m2\n") < prompt.index("Customer: m11\n")


def test_history_is_per_customer(db_session, history_service, chat_model):
    _add_messages(db_session, "CUST002", 2)

    history_service.chat_with_history(db_session, ChatRequest(message="hello", customer_id="CUST001"))

    assert "(no previous messages)" in chat_model.prompts[0]


def test_chat_without_customer_skips_history(db_session, history_service, chat_model):
    _add_messages(db_session, None, 1)

    response = history_service.chat_with_history(db_session, ChatRequest(message="What are your hours?"))

    assert response.customer_id is None
    assert "(no previous messages)" in chat_model.prompts[0]


def test_chat_with_history_is_metered(db_session, history_service, metrics):
    history_service.chat_with_history(db_session, ChatRequest(message="hello", customer_id="CUST001"))

    snapshot = metrics.get_snapshot()
    assert snapshot["calls"]["customer-service.chat_with_history.success"]["count"] == 1
    assert snapshot["tokenUsage"]["customer-service.total"] == 150


def test_get_history_newest_first(db_session, history_service):
    _add_messages(db_session, "CUST001", 12)

    history = history_service.get_history(db_session, "CUST001", limit=3)

    assert [entry.message for entry in history] == ["m11", "m10", "m9"]
    assert len(history_service.get_history(db_session, "CUST001")) == 12
    assert history_service.get_history(db_session, "CUST999") == []


def test_clear_history(db_session, history_service):
    _add_messages(db_session, "CUST001", 12)
    _add_messages(db_session, "CUST002", 2)

    assert history_service.clear_history(db_session, "CUST001") == 12

    assert history_service.get_history(db_session, "CUST001") == []
    assert len(history_service.get_history(db_session, "CUST002")) == 2
    assert history_service.clear_history(db_session, "CUST001") == 0
