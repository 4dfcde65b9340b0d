from .client import ChatModel, GroqChatModel, InstrumentedLLMClient, LLMResponse, LLMServiceError
from .pricing import estimate_cost_usd

__all__ = [
    "ChatModel",
    "GroqChatModel",
    "InstrumentedLLMClient",
    "LLMResponse",
    "LLMServiceError",
    "estimate_cost_usd",
]
