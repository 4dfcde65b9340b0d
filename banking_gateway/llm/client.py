"""
LLM access for the AI handlers.

Handlers talk to the model only through InstrumentedLLMClient, which reports
every call's outcome, token usage and estimated cost to the metrics
aggregator.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import groq
from groq import Groq

from banking_gateway.observability.tracing import get_tracer, trace_span, add_span_attributes
from banking_gateway.ratelimit.metrics import MetricsAggregator
from .pricing import estimate_cost_usd
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)
tracer = get_tracer("llm.client")

# Errors worth another attempt; auth and bad-request errors are not
TRANSIENT_ERRORS = (
    groq.APIConnectionError,
    groq.RateLimitError,
    groq.InternalServerError,
)


class LLMServiceError(Exception):
    """Raised when the language model cannot produce a completion."""


@dataclass
class LLMResponse:
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class ChatModel(ABC):
    """Text-in/text-out language model."""

    provider: str = "unknown"

    @abstractmethod
    def generate(self, prompt: str) -> LLMResponse:
        """Complete a single user prompt."""


class GroqChatModel(ChatModel):
    """Chat completions through the Groq API."""

    provider = "groq"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client: Optional[Groq] = None

    def _get_client(self) -> Groq:
        if not self.api_key:
            raise LLMServiceError("GROQ_API_KEY is not set in settings.")
        if self._client is None:
            self._client = Groq(api_key=self.api_key)
        return self._client

    @retry_with_backoff(max_attempts=3, initial_delay=1.0, retry_on=TRANSIENT_ERRORS)
    def _create_completion(self, prompt: str):
        return self._get_client().chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    def generate(self, prompt: str) -> LLMResponse:
        try:
            response = self._create_completion(prompt)
        except groq.APIError as e:
            logger.error(f"Error calling Groq API: {str(e)}")
            raise LLMServiceError(f"Groq API call failed: {e}") from e

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


class InstrumentedLLMClient:
    """
    Wraps a ChatModel and reports into the metrics aggregator.

    Every completion records a call (success or failure) with its duration;
    successful completions also record token usage and estimated cost.
    """

    def __init__(self, model: ChatModel, metrics: MetricsAggregator):
        self.model = model
        self.metrics = metrics

    def complete(self, service_name: str, operation_name: str, prompt: str) -> str:
        """
        Run a prompt through the model on behalf of a service.

        Raises:
            LLMServiceError: If the model call fails
        """
        with trace_span(tracer, "llm.complete", {
            "llm.service": service_name,
            "llm.operation": operation_name,
        }) as span:
            with self.metrics.timed(service_name, operation_name):
                response = self.model.generate(prompt)

            self.metrics.record_token_usage(service_name, response.input_tokens, response.output_tokens)

            cost = estimate_cost_usd(
                response.model, response.input_tokens, response.output_tokens, provider=self.model.provider
            )
            self.metrics.record_cost(service_name, cost)

            add_span_attributes(span, {
                "llm.model": response.model,
                "llm.tokens.prompt": response.input_tokens,
                "llm.tokens.completion": response.output_tokens,
                "llm.cost.usd": cost,
            })

        logger.info(
            f"LLM call for {service_name}.{operation_name}: "
            f"{response.input_tokens + response.output_tokens} tokens, ${cost:.6f}"
        )
        return response.content
