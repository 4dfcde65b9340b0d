from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST

from banking_gateway.deps import get_metrics, get_rate_limiter, get_interceptor
from banking_gateway.ratelimit import MetricsAggregator, RateLimiterRegistry, RateLimitInterceptor

router = APIRouter()


@router.get("/ai")
async def ai_metrics(metrics: Annotated[MetricsAggregator, Depends(get_metrics)]):
    """Snapshot of AI call counts, latencies, token usage, cost and rejections"""
    return metrics.get_snapshot()


@router.get("/prometheus")
async def prometheus_metrics(metrics: Annotated[MetricsAggregator, Depends(get_metrics)]):
    return Response(content=metrics.render_prometheus(), media_type=CONTENT_TYPE_LATEST)


@router.get("/ratelimit")
async def rate_limit_status(
    registry: Annotated[RateLimiterRegistry, Depends(get_rate_limiter)],
    interceptor: Annotated[RateLimitInterceptor, Depends(get_interceptor)],
):
    """Current bucket levels per configured service"""
    return {
        "enabled": interceptor.enabled,
        "services": registry.status(),
    }
