"""Visual test API routes: run, accept and fetch baselines."""

from __future__ import annotations

import asyncio

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from visualperfect.exceptions import DecodeError
from visualperfect.models.api import (
    AcceptRequest,
    BaselineListResponse,
    BaselineResponse,
    ErrorResponse,
    ResultResponse,
    RunTestRequest,
)
from visualperfect.models.domain import VisualTestResult
from visualperfect.runner.orchestrator import VisualTestOrchestrator
from visualperfect.types import ErrorKind
from visualperfect.utils.images import from_data_uri
from visualperfect.web.dependencies import get_orchestrator

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["visual"])

ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.CAPTURE_FAILED: 500,
    ErrorKind.DECODE_ERROR: 500,
    ErrorKind.WRITE_ERROR: 500,
    ErrorKind.INVALID_IMAGE: 422,
}


def _respond(result: VisualTestResult) -> JSONResponse:
    status_code = ERROR_STATUS_CODES[result.error_kind] if result.is_error and result.error_kind else 200
    body = ResultResponse.from_result(result).model_dump(mode="json", by_alias=True, exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@router.post("/test", response_model=ResultResponse)
async def run_test(
    body: RunTestRequest,
    orchestrator: VisualTestOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    logger.info("test_requested", subject=body.subject)
    # A client that goes away does not cancel the capture; it only misses the result
    result = await asyncio.shield(orchestrator.run_test(body.subject))
    return _respond(result)


@router.post("/accept", response_model=ResultResponse)
async def accept_baseline(
    body: AcceptRequest,
    orchestrator: VisualTestOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    logger.info("accept_requested", subject=body.subject)
    candidate = None
    if body.image_base64:
        try:
            candidate = from_data_uri(body.image_base64)
        except DecodeError as e:
            return JSONResponse(
                status_code=422,
                content=ErrorResponse(message=str(e)).model_dump(),
            )
    result = await asyncio.shield(orchestrator.accept(body.subject, candidate))
    return _respond(result)


@router.get("/baseline/{subject}", response_model=BaselineResponse)
async def get_baseline(
    subject: str,
    orchestrator: VisualTestOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    info = await orchestrator.get_baseline(subject)
    body = BaselineResponse.from_info(info).model_dump(mode="json", by_alias=True, exclude_none=True)
    return JSONResponse(content=body)


@router.get("/baselines", response_model=BaselineListResponse)
async def list_baselines(
    orchestrator: VisualTestOrchestrator = Depends(get_orchestrator),
) -> BaselineListResponse:
    return BaselineListResponse(subjects=await orchestrator.list_baselines())
