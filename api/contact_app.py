"""
FastAPI application exposing the contact router.

Run with:
    uvicorn api.contact_app:create_app --factory
"""

import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from api.contact import router as contact_router
from core.error_handling import register_exception_handlers
from core.logging_config import bind_context, get_logger, log_request, unbind_context
from core.mailer import Mailer, build_mailer
from core.metrics import get_metrics_content_type, get_metrics_text
from core.pipeline import SubmissionPipeline
from core.policy import Policy, load_policy
from core.rate_limiter import FixedWindowRateLimiter, get_client_ip
from core.status import StatusCounter

logger = get_logger(__name__)


def create_app(
    policy: Optional[Policy] = None,
    mailer: Optional[Mailer] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """
    Build an application with its own rate-limit table and status counter.

    Args:
        policy: Active policy; loaded from file and environment when omitted
        mailer: Delivery collaborator; chosen from the environment when omitted
        clock: Time source for the rate limiter
    """
    if policy is None:
        policy = load_policy()
    if mailer is None:
        mailer = build_mailer()

    limiter = FixedWindowRateLimiter(
        window_seconds=policy.window_seconds,
        max_requests=policy.max_requests,
        max_entries=policy.max_tracked_clients,
        clock=clock,
    )

    app = FastAPI(title="Contact Relay API")
    app.state.pipeline = SubmissionPipeline(policy, limiter, StatusCounter(), mailer)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=policy.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        bind_context(client_id=get_client_ip(request, policy.trusted_proxy_hops))
        start = time.perf_counter()
        try:
            response = await call_next(request)
            log_request(
                logger,
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - start) * 1000,
            )
        finally:
            unbind_context("client_id")
        return response

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return Response(content=get_metrics_text(), media_type=get_metrics_content_type())

    app.include_router(contact_router)

    logger.info(
        "contact_app_ready",
        max_requests=policy.max_requests,
        window_seconds=policy.window_seconds,
        access_key_mode=policy.access_key_mode.value,
        reply_address_mode=policy.reply_address_mode.value,
        conditional_field_mode=policy.conditional_field_mode.value,
    )
    return app
