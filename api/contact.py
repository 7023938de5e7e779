"""
Contact Form API

Receives contact form submissions, runs them through the submission pipeline
(bot check, access key, rate limiting, validation, normalization) and relays
accepted submissions by email. Also exposes a read-only status view.
"""

from typing import Union, List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from core.pipeline import Outcome, PipelineResult, SubmissionPipeline
from core.rate_limiter import get_client_ip


# Create router
router = APIRouter(prefix="/api", tags=["contact"])


# Pydantic Models
class MessageResponse(BaseModel):
    """Response envelope for submissions"""
    message: Union[str, List[str]]


class StatusResponse(BaseModel):
    """Response for the status view"""
    status: str
    submissionCount: int
    message: str


def get_pipeline(request: Request) -> SubmissionPipeline:
    """Pipeline owned by the running application"""
    return request.app.state.pipeline


def to_response(result: PipelineResult):
    """Translate a pipeline outcome into an HTTP response"""
    if result.outcome is Outcome.REDIRECTED:
        return RedirectResponse(result.location, status_code=result.status_code)

    headers = None
    if result.retry_after:
        headers = {"Retry-After": str(result.retry_after)}

    return JSONResponse(
        status_code=result.status_code,
        content=MessageResponse(message=result.message).model_dump(),
        headers=headers,
    )


# API Endpoints

@router.api_route("/submit", methods=["GET", "HEAD"])
async def submit_redirect(request: Request, pipeline: SubmissionPipeline = Depends(get_pipeline)):
    """Reads on the submit endpoint go to the status view"""
    client_id = get_client_ip(request, pipeline.policy.trusted_proxy_hops)
    return to_response(pipeline.handle(request.method, None, client_id))


@router.post("/submit", response_model=MessageResponse)
async def submit_contact_form(request: Request, pipeline: SubmissionPipeline = Depends(get_pipeline)):
    """
    Submit a contact form

    - **from_name**: Sender name (1-100 characters)
    - **replyto**: Sender email address
    - **Origin**: Page or site the form was sent from (optional)
    - **selectedOption**: Category that may require extra fields
    - any other fields are relayed as-is after escaping

    Rate limit: configured per client address per window
    """
    client_id = get_client_ip(request, pipeline.policy.trusted_proxy_hops)

    try:
        body = await request.json()
    except ValueError:
        body = None

    result = pipeline.handle(request.method, body, client_id)
    if result.outcome is Outcome.ACCEPTED:
        result = await run_in_threadpool(pipeline.deliver, result)

    return to_response(result)


@router.get("/status", response_model=StatusResponse)
async def contact_status(pipeline: SubmissionPipeline = Depends(get_pipeline)):
    """Report service health and the number of accepted submissions"""
    return StatusResponse(
        status="OK",
        submissionCount=pipeline.status_counter.current_count(),
        message="API is operational",
    )
