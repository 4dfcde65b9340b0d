from unittest.mock import patch, MagicMock

import pytest

from banking_gateway.llm import GroqChatModel, InstrumentedLLMClient, LLMServiceError, estimate_cost_usd
from banking_gateway.llm.retry import retry_with_backoff


@pytest.fixture
def mock_groq():
    with patch("banking_gateway.llm.client.Groq") as mock:
        yield mock


def test_groq_model_without_key():
    model = GroqChatModel(api_key=None, model="llama-3.3-70b-versatile")
    with pytest.raises(LLMServiceError, match="GROQ_API_KEY is not set"):
        model.generate("Test prompt")


def test_groq_model_success(mock_groq):
    mock_instance = mock_groq.return_value
    mock_response = MagicMock()
    mock_response.choices[0].message.content = "RISK_SCORE: 0.2"
    mock_response.model = "llama-3.3-70b-versatile"
    mock_response.usage.prompt_tokens = 42
    mock_response.usage.completion_tokens = 7
    mock_instance.chat.completions.create.return_value = mock_response

    model = GroqChatModel(api_key="test_key", model="llama-3.3-70b-versatile", temperature=0.3, max_tokens=2000)
    response = model.generate("Test prompt")

    assert response.content == "RISK_SCORE: 0.2"
    assert response.input_tokens == 42
    assert response.output_tokens == 7
    mock_groq.assert_called_once_with(api_key="test_key")

    call_args = mock_instance.chat.completions.create.call_args
    assert call_args.kwargs["messages"][0]["content"] == "Test prompt"
    assert call_args.kwargs["model"] == "llama-3.3-70b-versatile"
    assert call_args.kwargs["temperature"] == 0.3


def test_complete_records_call_tokens_and_cost(chat_model, metrics):
    client = InstrumentedLLMClient(chat_model, metrics)
    chat_model.reply = "All good"

    assert client.complete("fraud-detection", "detect_fraud", "prompt") == "All good"

    snapshot = metrics.get_snapshot()
    assert snapshot["calls"]["fraud-detection.detect_fraud.success"]["count"] == 1
    assert snapshot["tokenUsage"]["fraud-detection.input"] == 100
    assert snapshot["tokenUsage"]["fraud-detection.output"] == 50
    assert snapshot["tokenUsage"]["fraud-detection.total"] == 150

    expected = estimate_cost_usd("llama-3.3-70b-versatile", 100, 50)
    assert snapshot["costs"]["fraud-detection"] == pytest.approx(expected, abs=1e-6)


def test_complete_records_failure(chat_model, metrics):
    client = InstrumentedLLMClient(chat_model, metrics)
    chat_model.error = LLMServiceError("model unavailable")

    with pytest.raises(LLMServiceError):
        client.complete("compliance", "check_compliance", "prompt")

    snapshot = metrics.get_snapshot()
    assert snapshot["calls"]["compliance.check_compliance.failure"]["count"] == 1
    assert snapshot["tokenUsage"] == {}
    assert snapshot["costs"] == {}


def test_estimate_cost_uses_model_pricing():
    # 1M prompt tokens at $0.59 plus 1M completion tokens at $0.79
    assert estimate_cost_usd("llama-3.3-70b-versatile", 1_000_000, 1_000_000) == pytest.approx(1.38)
    # Unknown models fall back to the default rate
    assert estimate_cost_usd("mystery-model", 1_000_000, 0) == pytest.approx(0.10)


def test_retry_with_backoff_retries_listed_errors():
    attempts = []

    @retry_with_backoff(max_attempts=3, initial_delay=0, jitter=False, retry_on=(ConnectionError,))
    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("reset")
        return "ok"

    with patch("banking_gateway.llm.retry.time.sleep"):
        assert flaky() == "ok"
    assert len(attempts) == 3


def test_retry_with_backoff_gives_up():
    @retry_with_backoff(max_attempts=2, initial_delay=0, jitter=False, retry_on=(ConnectionError,))
    def broken():
        raise ConnectionError("reset")

    with patch("banking_gateway.llm.retry.time.sleep"):
        with pytest.raises(ConnectionError):
            broken()


def test_retry_with_backoff_ignores_other_errors():
    attempts = []

    @retry_with_backoff(max_attempts=3, retry_on=(ConnectionError,))
    def bad_request():
        attempts.append(1)
        raise ValueError("bad prompt")

    with pytest.raises(ValueError):
        bad_request()
    assert len(attempts) == 1
