from fastapi import Request

from banking_gateway.config import Settings
from banking_gateway.llm import InstrumentedLLMClient
from banking_gateway.ratelimit import RateLimitInterceptor, RateLimiterRegistry, MetricsAggregator
from banking_gateway.services.knowledge import KnowledgeBase


# Components are built once in create_app and shared through app.state

async def get_interceptor(request: Request) -> RateLimitInterceptor:
    return request.app.state.interceptor


async def get_rate_limiter(request: Request) -> RateLimiterRegistry:
    return request.app.state.rate_limiter


async def get_metrics(request: Request) -> MetricsAggregator:
    return request.app.state.metrics


async def get_llm_client(request: Request) -> InstrumentedLLMClient:
    return request.app.state.llm


async def get_knowledge_base(request: Request) -> KnowledgeBase:
    return request.app.state.knowledge_base


async def get_settings(request: Request) -> Settings:
    return request.app.state.settings
