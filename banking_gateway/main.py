import time
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from banking_gateway import __version__
from banking_gateway.config import Settings, settings as default_settings
from banking_gateway.database import init_db
from banking_gateway.llm import ChatModel, GroqChatModel, InstrumentedLLMClient, LLMServiceError
from banking_gateway.observability import configure_tracing
from banking_gateway.ratelimit import (
    RateLimitConfig,
    RateLimiterRegistry,
    RateLimitInterceptor,
    RateLimitExceededError,
    MetricsAggregator,
    load_rate_limit_config,
)
from banking_gateway.routers import advanced, analysis, assistant, metrics
from banking_gateway.services import KnowledgeBase, InMemoryKnowledgeBase, NotFoundError

# Configure logging
logging.basicConfig(
    level=logging.INFO if not default_settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    rate_limit_config: Optional[RateLimitConfig] = None,
    chat_model: Optional[ChatModel] = None,
    knowledge_base: Optional[KnowledgeBase] = None,
    clock: Callable[[], float] = time.monotonic,
    init_database: bool = True,
) -> FastAPI:
    """
    Build the gateway application.

    The rate limiter, metrics aggregator, LLM client and knowledge base are
    created here and shared through ``app.state``; pass explicit instances
    to isolate tests.
    """
    settings = settings or default_settings
    rate_limit_config = rate_limit_config or load_rate_limit_config()

    registry = RateLimiterRegistry.from_config(rate_limit_config, clock=clock)
    aggregator = MetricsAggregator()
    interceptor = RateLimitInterceptor(registry, metrics=aggregator, enabled=rate_limit_config.enabled)

    if chat_model is None:
        chat_model = GroqChatModel(
            api_key=settings.GROQ_API_KEY,
            model=settings.GROQ_MODEL,
            temperature=settings.GROQ_TEMPERATURE,
            max_tokens=settings.GROQ_MAX_TOKENS,
        )

    if knowledge_base is None:
        knowledge_base = InMemoryKnowledgeBase()
        knowledge_base.load_defaults()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic"""
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        configure_tracing()
        if init_database:
            init_db()
        if not rate_limit_config.enabled:
            logger.warning("Rate limiting is disabled via RATE_LIMIT_ENABLED=false")

        yield

        logger.info("Shutting down application")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Rate-limited, instrumented LLM analyses for banking workloads",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.state.settings = settings
    app.state.rate_limiter = registry
    app.state.metrics = aggregator
    app.state.interceptor = interceptor
    app.state.llm = InstrumentedLLMClient(chat_model, aggregator)
    app.state.knowledge_base = knowledge_base

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_exception_handler(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers,
        )

    @app.exception_handler(NotFoundError)
    async def not_found_exception_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(LLMServiceError)
    async def llm_exception_handler(request: Request, exc: LLMServiceError):
        logger.error(f"LLM call failed: {str(exc)}")
        return JSONResponse(
            status_code=502,
            content={
                "detail": "AI service unavailable",
                "error": str(exc) if settings.DEBUG else "The language model could not be reached"
            },
        )

    # Global error handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "error": str(exc) if settings.DEBUG else "An error occurred"
            },
        )

    # Health check
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
            "rate_limiting": rate_limit_config.enabled,
        }

    app.include_router(
        analysis.router,
        prefix=settings.API_V1_PREFIX,
        tags=["analysis"],
    )
    app.include_router(
        assistant.router,
        prefix=settings.API_V1_PREFIX,
        tags=["assistant"],
    )
    app.include_router(
        advanced.router,
        prefix=f"{settings.API_V1_PREFIX}/ai/advanced",
        tags=["advanced"],
    )
    app.include_router(
        metrics.router,
        prefix=f"{settings.API_V1_PREFIX}/metrics",
        tags=["metrics"],
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "banking_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG,
    )
